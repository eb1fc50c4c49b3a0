"""Тесты запуска команд через subprocess."""
import pytest

from pushr.errors import DeployTimeout
from pushr.runner import SubprocessRunner


class TestSubprocessRunner:
    """Тесты SubprocessRunner."""

    @pytest.mark.asyncio
    async def test_combined_output_and_exit_status(self, tmp_path):
        exit_status, output = await SubprocessRunner().run(
            tmp_path, ["/bin/sh", "-c", "echo out; echo err 1>&2; exit 3"]
        )

        assert exit_status == 3
        assert "out\n" in output
        assert "err\n" in output

    @pytest.mark.asyncio
    async def test_runs_in_cwd(self, tmp_path):
        (tmp_path / "marker.txt").write_text("here")

        exit_status, output = await SubprocessRunner().run(tmp_path, ["/bin/sh", "-c", "cat marker.txt"])

        assert exit_status == 0
        assert output == "here"

    @pytest.mark.asyncio
    async def test_timeout_kills_command(self, tmp_path):
        with pytest.raises(DeployTimeout) as exc_info:
            await SubprocessRunner(kill_grace=1.0).run(
                tmp_path, ["/bin/sh", "-c", "echo started; sleep 30"], timeout=0.5
            )

        assert exc_info.value.timeout == 0.5
        assert "started" in exc_info.value.output

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        with pytest.raises(OSError):
            await SubprocessRunner().run(tmp_path, ["definitely-not-a-real-binary-pushr"])
