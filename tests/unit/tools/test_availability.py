"""Tests for external tool probing."""

from conftest import FakeRunner, failing_tool, ok, timeout_tool

from imgconv.tools import availability as availability_module
from imgconv.tools.availability import ToolAvailability, ToolProber, clear_probe_cache, probe


class TestToolAvailability:
    """Tests for ToolAvailability snapshot."""

    def test_none(self):
        availability = ToolAvailability.none()
        assert not any(availability.has(t) for t in ("dcraw_emu", "dcraw", "vips", "magick"))

    def test_command_defaults(self):
        """Test fallback command names when nothing was resolved."""
        availability = ToolAvailability.none()
        assert availability.command("dcraw_emu") == "dcraw_emu"
        assert availability.command("magick") == "magick"
        assert availability.command("vips") == "vips"

    def test_command_resolved(self):
        availability = ToolAvailability(
            dcraw_emu=True, libraw_command="libraw_dcraw_emu", magick=True, magick_command="convert"
        )
        assert availability.command("dcraw_emu") == "libraw_dcraw_emu"
        assert availability.command("magick") == "convert"

    def test_summary(self):
        availability = ToolAvailability(dcraw=True, magick=True)
        assert availability.summary() == "dcraw_emu=no dcraw=yes vips=no magick=yes"


class TestToolProber:
    """Tests for ToolProber."""

    def test_all_missing(self):
        """Test spawn failures mark every tool absent."""
        availability = ToolProber(runner=FakeRunner()).probe()
        assert availability.summary() == "dcraw_emu=no dcraw=no vips=no magick=no"
        assert availability.libraw_command is None

    def test_all_present(self):
        runner = FakeRunner({name: ok for name in ("dcraw_emu", "dcraw", "vips", "magick")})
        availability = ToolProber(runner=runner).probe()
        assert availability.dcraw_emu and availability.dcraw
        assert availability.vips and availability.magick
        assert availability.libraw_command == "dcraw_emu"
        assert availability.magick_command == "magick"

    def test_secondary_probe_argument(self):
        """Test a tool rejecting -V is still found through -h."""

        def dcraw(args):
            return ok(args) if args[1] == "-h" else failing_tool()(args)

        runner = FakeRunner({"dcraw": dcraw})
        availability = ToolProber(runner=runner).probe()

        assert availability.dcraw
        assert runner.called("dcraw") == [["dcraw", "-V"], ["dcraw", "-h"]]

    def test_alternative_command_names(self):
        """Test libraw_dcraw_emu and convert are used when the primary names are missing."""
        runner = FakeRunner({"libraw_dcraw_emu": ok, "convert": ok})
        availability = ToolProber(runner=runner).probe()

        assert availability.dcraw_emu
        assert availability.libraw_command == "libraw_dcraw_emu"
        assert availability.magick
        assert availability.magick_command == "convert"

    def test_timeout_means_absent(self):
        runner = FakeRunner({"vips": timeout_tool})
        assert not ToolProber(runner=runner, which=lambda c: None).probe().vips

    def test_rejects_all_arguments_but_on_path(self):
        """Test dcraw exiting non-zero for -V and -h is present when found on PATH."""
        runner = FakeRunner({"dcraw": failing_tool(returncode=1)})
        availability = ToolProber(runner=runner, which=lambda c: f"/usr/bin/{c}").probe()

        assert availability.dcraw
        assert not availability.dcraw_emu
        assert runner.called("dcraw") == [["dcraw", "-V"], ["dcraw", "-h"]]

    def test_rejects_all_arguments_not_on_path(self):
        runner = FakeRunner({"dcraw": failing_tool(returncode=1)})
        assert not ToolProber(runner=runner, which=lambda c: None).probe().dcraw

    def test_libraw_emulator_found_on_path(self):
        runner = FakeRunner({"dcraw_emu": failing_tool(returncode=1)})
        availability = ToolProber(runner=runner, which=lambda c: f"/usr/bin/{c}").probe()

        assert availability.dcraw_emu
        assert availability.libraw_command == "dcraw_emu"

    def test_missing_binary_spawned_once(self):
        """Test a command that cannot be spawned is not retried with other arguments."""
        runner = FakeRunner()
        availability = ToolProber(runner=runner, which=lambda c: f"/usr/bin/{c}").probe()

        assert not availability.dcraw
        assert runner.called("dcraw") == [["dcraw", "-V"]]
        assert runner.called("libraw_dcraw_emu") == [["libraw_dcraw_emu", "-V"]]

    def test_never_raises(self):
        """Test unexpected errors produce an all-absent snapshot."""

        def explode(args):
            raise RuntimeError("boom")

        runner = FakeRunner({"dcraw_emu": explode})
        availability = ToolProber(runner=runner).probe()
        assert availability == ToolAvailability(checked_at=availability.checked_at)


class TestProbeCache:
    """Tests for the process-wide probe cache."""

    def test_cached_within_ttl(self, monkeypatch):
        calls = []

        def fake_probe(self):
            calls.append(1)
            return ToolAvailability(vips=True)

        monkeypatch.setattr(availability_module.ToolProber, "probe", fake_probe)

        first = probe(ttl=60)
        second = probe(ttl=60)

        assert first is second
        assert len(calls) == 1

    def test_refresh_bypasses_cache(self, monkeypatch):
        calls = []
        prober = availability_module.ToolProber
        monkeypatch.setattr(prober, "probe", lambda self: calls.append(1) or ToolAvailability())

        probe(ttl=60)
        probe(ttl=60, refresh=True)

        assert len(calls) == 2

    def test_zero_ttl_always_probes(self, monkeypatch):
        calls = []
        prober = availability_module.ToolProber
        monkeypatch.setattr(prober, "probe", lambda self: calls.append(1) or ToolAvailability())

        probe(ttl=0)
        probe(ttl=0)
        clear_probe_cache()

        assert len(calls) == 2
