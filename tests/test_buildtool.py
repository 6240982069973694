import subprocess

import pytest

from wsframe import buildtool
from wsframe.buildtool import EXAMPLE_FILES, BuildFlags, collect_flags, example_commands, main, run

BASE = (
    " -march=native -O3 -Wpedantic -Wall -Wextra -Wsign-conversion"
    " -Wconversion -std=c++20 -Isrc -IuSockets/src"
)

ENV_NAMES = [
    "CXXFLAGS", "CFLAGS", "LDFLAGS", "CC", "CXX", "EXEC_SUFFIX",
    "WITH_LTO", "WITH_ZLIB", "WITH_PROXY", "WITH_QUIC", "WITH_BORINGSSL",
    "WITH_OPENSSL", "WITH_WOLFSSL", "WITH_LIBUV", "WITH_ASIO", "WITH_ASAN",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def fake_shell(monkeypatch):
    calls = []
    status = {"code": 0}

    def fake_run(command, shell, check):
        calls.append(command)
        return subprocess.CompletedProcess(command, status["code"])

    monkeypatch.setattr(buildtool.subprocess, "run", fake_run)
    return calls, status


def test_defaults():
    flags = collect_flags({})
    assert flags == BuildFlags(
        cxxflags=BASE + " -flto",
        cflags="",
        ldflags=" uSockets/*.o -lz",
        cc="cc",
        cxx="g++",
        exec_suffix="",
    )


def test_without_lto_and_zlib():
    flags = collect_flags({"WITH_LTO": "0", "WITH_ZLIB": "0"})
    assert flags.cxxflags == BASE + " -DUWS_NO_ZLIB"
    assert flags.ldflags == " uSockets/*.o"


def test_environment_prefixes_and_compilers():
    flags = collect_flags({"LDFLAGS": "-L/opt", "CC": "clang", "CXX": "clang++", "EXEC_SUFFIX": ".exe"})
    assert flags.ldflags.startswith("-L/opt uSockets/*.o")
    assert (flags.cc, flags.cxx, flags.exec_suffix) == ("clang", "clang++", ".exe")


def test_boringssl_wins_over_openssl():
    flags = collect_flags({"WITH_BORINGSSL": "1", "WITH_OPENSSL": "1"})
    assert "-DLIBUS_USE_OPENSSL" in flags.cflags
    assert "libssl.a" in flags.ldflags
    assert "-lssl -lcrypto" not in flags.ldflags


def test_openssl_wins_over_wolfssl():
    flags = collect_flags({"WITH_OPENSSL": "1", "WITH_WOLFSSL": "1"})
    assert flags.ldflags.endswith(" -lssl -lcrypto")
    assert "-lwolfssl" not in flags.ldflags


def test_optional_features_append_in_order():
    flags = collect_flags({"WITH_PROXY": "1", "WITH_ASIO": "1", "WITH_ASAN": "1", "WITH_LIBUV": "1"})
    assert flags.cxxflags == BASE + " -flto -DUWS_WITH_PROXY -pthread -fsanitize=address -g"
    assert flags.ldflags == " uSockets/*.o -lz -luv -lpthread -lasan"


def test_only_exact_values_enable_features():
    flags = collect_flags({"WITH_PROXY": "yes", "WITH_QUIC": "true"})
    assert flags == collect_flags({})


def test_run_echoes_and_returns_status(fake_shell, capsys):
    calls, status = fake_shell
    status["code"] = 3
    assert run("echo hi") == 3
    assert calls == ["echo hi"]
    assert capsys.readouterr().out == "--> echo hi\n\n"


@pytest.mark.parametrize("target", ["capi", "clean", "install", "all"])
def test_placeholder_targets(target, clean_env, fake_shell, capsys):
    calls, _ = fake_shell
    assert main([target]) == 0
    assert capsys.readouterr().out == f"{target} target does nothing yet\n"
    assert calls == []


def test_examples_builds_every_program(clean_env, fake_shell):
    calls, _ = fake_shell
    assert main(["examples"]) == 0
    assert calls == example_commands(collect_flags({}))


def test_examples_stop_on_failure(clean_env, fake_shell):
    calls, status = fake_shell
    status["code"] = 1
    assert main(["examples"]) == -1
    assert len(calls) == 1


def test_missing_target_is_an_error(clean_env):
    with pytest.raises(SystemExit):
        main([])