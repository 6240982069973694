"""Compose compiler command lines for the example programs and run them."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass

EXAMPLE_FILES = (
    "Http3Server",
    "Broadcast",
    "HelloWorld",
    "Crc32",
    "ServerName",
    "EchoServer",
    "BroadcastingEchoServer",
    "UpgradeSync",
    "UpgradeAsync",
    "ParameterRoutes",
)

_BASE_CXXFLAGS = (
    " -march=native -O3 -Wpedantic -Wall -Wextra -Wsign-conversion"
    " -Wconversion -std=c++20 -Isrc -IuSockets/src"
)


@dataclass
class BuildFlags:
    """Compiler names and flag strings derived from the environment."""

    cxxflags: str
    cflags: str
    ldflags: str
    cc: str = "cc"
    cxx: str = "g++"
    exec_suffix: str = ""


def _env_is(environ: Mapping[str, str], name: str, target: str) -> bool:
    return environ.get(name) == target


def collect_flags(environ: Mapping[str, str] | None = None) -> BuildFlags:
    """Build the flag set from ``environ`` (defaults to the process environment)."""
    env = os.environ if environ is None else environ

    cxxflags = env.get("CXXFLAGS", "") + _BASE_CXXFLAGS
    cflags = env.get("CFLAGS", "")
    ldflags = env.get("LDFLAGS", "") + " uSockets/*.o"

    if not _env_is(env, "WITH_LTO", "0"):
        cxxflags += " -flto"

    if not _env_is(env, "WITH_ZLIB", "0"):
        ldflags += " -lz"
    else:
        cxxflags += " -DUWS_NO_ZLIB"

    if _env_is(env, "WITH_PROXY", "1"):
        cxxflags += " -DUWS_WITH_PROXY"

    if _env_is(env, "WITH_QUIC", "1"):
        cxxflags += " -DLIBUS_USE_QUIC"
        ldflags += " -pthread -lz -lm uSockets/lsquic/src/liblsquic/liblsquic.a"

    if _env_is(env, "WITH_BORINGSSL", "1"):
        cflags += " -I uSockets/boringssl/include -pthread -DLIBUS_USE_OPENSSL"
        ldflags += (
            " -pthread uSockets/boringssl/build/ssl/libssl.a"
            " uSockets/boringssl/build/crypto/libcrypto.a"
        )
    elif _env_is(env, "WITH_OPENSSL", "1"):
        ldflags += " -lssl -lcrypto"
    elif _env_is(env, "WITH_WOLFSSL", "1"):
        ldflags += " -L/usr/local/lib -lwolfssl"

    if _env_is(env, "WITH_LIBUV", "1"):
        ldflags += " -luv"

    if _env_is(env, "WITH_ASIO", "1"):
        cxxflags += " -pthread"
        ldflags += " -lpthread"

    if _env_is(env, "WITH_ASAN", "1"):
        cxxflags += " -fsanitize=address -g"
        ldflags += " -lasan"

    return BuildFlags(
        cxxflags=cxxflags,
        cflags=cflags,
        ldflags=ldflags,
        cc=env.get("CC", "cc"),
        cxx=env.get("CXX", "g++"),
        exec_suffix=env.get("EXEC_SUFFIX", ""),
    )


def example_commands(flags: BuildFlags) -> list[str]:
    """Return one compile command per example program, in build order."""
    return [
        f"{flags.cxx}{flags.cxxflags} examples/{name}.cpp {flags.ldflags} -o {name}{flags.exec_suffix}"
        for name in EXAMPLE_FILES
    ]


def run(command: str) -> int:
    """Echo ``command``, run it through the shell and return its exit status."""
    print(f"--> {command}\n", flush=True)
    return subprocess.run(command, shell=True, check=False).returncode


def main(argv=None) -> int:
    """Run a build target: examples, capi, clean, install or all."""
    parser = argparse.ArgumentParser(prog="build", description="Build the example programs.")
    parser.add_argument("target", help="examples, capi, clean, install or all")
    args = parser.parse_args(argv)

    flags = collect_flags()

    if args.target == "examples":
        for command in example_commands(flags):
            if run(command):
                return -1
    elif args.target in ("capi", "clean", "install", "all"):
        print(f"{args.target} target does nothing yet")
    return 0


if __name__ == "__main__":
    sys.exit(main())