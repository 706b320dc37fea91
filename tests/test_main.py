import importlib
from unittest import mock

import pytest

from perfbench.errors import TargetUnavailableError

cli_main = importlib.import_module("perfbench.benchmarks.main")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PERF_BENCHMARK",
        "PERF_LOOP_COUNT",
        "PERF_ROW_COUNT",
        "PERF_THREAD_COUNT",
        "PERF_RANDOM",
        "PERF_WRITE",
        "PERF_DATA_DIR",
        "PERF_TARGET_IMAGE",
        "PERF_TARGET_ENV",
        "PERF_TARGET_NETWORK",
        "PERF_TARGET_READY_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestParseArgs:
    def test_defaults(self):
        args = cli_main.parse_args([])
        assert args.benchmark == "sqlite"
        assert args.loop_count == 5
        assert args.row_count == 5000
        assert args.is_random is None
        assert args.is_write is None
        assert args.target_image is None

    def test_flags(self):
        args = cli_main.parse_args(["--serial", "--read", "--thread-count", "3", "--row-count", "10"])
        assert args.is_random is False
        assert args.is_write is False
        assert args.thread_count == 3
        assert args.row_count == 10

    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("PERF_LOOP_COUNT", "2")
        monkeypatch.setenv("PERF_RANDOM", "true")
        monkeypatch.setenv("PERF_WRITE", "0")
        args = cli_main.parse_args([])
        assert args.loop_count == 2
        assert args.is_random is True
        assert args.is_write is False

    def test_invalid_environment_value_falls_back(self, monkeypatch, capsys):
        monkeypatch.setenv("PERF_ROW_COUNT", "lots")
        args = cli_main.parse_args([])
        assert args.row_count == 5000
        assert "invalid PERF_ROW_COUNT" in capsys.readouterr().err

    def test_random_and_serial_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli_main.parse_args(["--random", "--serial"])


class TestMain:
    def test_runs_sqlite_benchmark(self, tmp_path, capsys):
        code = cli_main.main(
            [
                "--data-dir",
                str(tmp_path),
                "--loop-count",
                "2",
                "--row-count",
                "40",
                "--thread-count",
                "2",
                "--random",
                "--write",
            ]
        )

        assert code == 0
        lines = [line for line in capsys.readouterr().out.splitlines() if "loop:" in line]
        assert len(lines) == 2
        assert lines[0].startswith("SqliteBenchmark: loop: 1, row count: 40, thread count: 2 random write, total time: ")
        assert not (tmp_path / "sqlite" / "perf_test.db").exists()

    def test_invalid_config_returns_error(self, tmp_path):
        assert cli_main.main(["--data-dir", str(tmp_path), "--row-count", "-1"]) == 1

    def test_target_container_wraps_run(self, tmp_path):
        events = []

        class FakeContainer:
            def __init__(self, settings):
                events.append(("settings", settings))

            def __enter__(self):
                events.append(("start",))
                return self

            def __exit__(self, *exc):
                events.append(("stop",))

        with mock.patch("perfbench.benchmarks.docker_control.TargetContainer", FakeContainer):
            code = cli_main.main(
                [
                    "--data-dir",
                    str(tmp_path),
                    "--loop-count",
                    "1",
                    "--row-count",
                    "4",
                    "--thread-count",
                    "1",
                    "--target-image",
                    "postgres:16",
                    "--target-env",
                    '{"POSTGRES_PASSWORD": "perf", "PGPORT": 5432}',
                    "--target-port",
                    "5432:15432",
                    "--target-network",
                    "bench",
                    "--target-ready-timeout",
                    "5",
                ]
            )

        assert code == 0
        (_, settings), *rest = events
        assert rest == [("start",), ("stop",)]
        assert settings.image == "postgres:16"
        assert settings.environment == {"POSTGRES_PASSWORD": "perf", "PGPORT": "5432"}
        assert settings.ports == {"5432/tcp": 15432}
        assert settings.network == "bench"
        assert settings.ready_timeout_s == 5.0

    def test_unready_target_returns_error(self, tmp_path):
        class UnreadyContainer:
            def __init__(self, settings):
                pass

            def __enter__(self):
                raise TargetUnavailableError("target not ready")

            def __exit__(self, *exc):
                pass

        with mock.patch("perfbench.benchmarks.docker_control.TargetContainer", UnreadyContainer):
            code = cli_main.main(["--data-dir", str(tmp_path), "--target-image", "postgres:16"])

        assert code == 1


class TestArgumentValidation:
    @pytest.mark.parametrize("value", ["{not json", "[1, 2]", '"text"'])
    def test_bad_target_env_is_a_usage_error(self, value, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli_main.parse_args(["--target-env", value])

        assert excinfo.value.code == 2
        assert "--target-env" in capsys.readouterr().err

    def test_target_env_from_environment_is_checked(self, monkeypatch):
        monkeypatch.setenv("PERF_TARGET_ENV", "oops")
        with pytest.raises(SystemExit):
            cli_main.parse_args([])

    @pytest.mark.parametrize("value", ["5432", "5432:high"])
    def test_bad_target_port_is_a_usage_error(self, value, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli_main.parse_args(["--target-port", value])

        assert excinfo.value.code == 2
        assert "invalid port mapping" in capsys.readouterr().err

    def test_parsed_target_values(self):
        args = cli_main.parse_args(["--target-env", '{"A": "1"}', "--target-port", "9092:19092"])
        assert args.target_env == {"A": "1"}
        assert args.target_ports == {"9092/tcp": 19092}

    def test_unknown_benchmark_from_environment_is_a_usage_error(self, monkeypatch, capsys):
        monkeypatch.setenv("PERF_BENCHMARK", "bogus")
        with pytest.raises(SystemExit) as excinfo:
            cli_main.parse_args([])

        assert excinfo.value.code == 2
        assert "invalid benchmark 'bogus'" in capsys.readouterr().err

    def test_benchmark_flag_overrides_bad_environment(self, monkeypatch):
        monkeypatch.setenv("PERF_BENCHMARK", "bogus")
        assert cli_main.parse_args(["--benchmark", "kafka"]).benchmark == "kafka"
