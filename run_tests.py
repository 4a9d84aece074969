#!/usr/bin/env python3
"""
SentinelNet test runner.

Runs pytest for one area of the tree (or all of it), optionally with
coverage via pytest-cov.
"""

import argparse
import subprocess
import sys
from pathlib import Path

# 영역 -> (테스트 경로, 설명)
TARGETS = {
    "all": ("tests/", "전체 테스트"),
    "unit": ("tests/unit/", "단위 테스트"),
    "integration": ("tests/test_emergency_scenarios.py", "긴급 시나리오 테스트"),
    "core": ("tests/unit/core/", "core 테스트"),
    "orchestrators": ("tests/unit/orchestrators/", "엔진 테스트"),
    "adapters": ("tests/unit/adapters/", "어댑터 테스트"),
    "ports": ("tests/unit/ports/", "포트 테스트"),
    "observability": ("tests/unit/observability/", "관측성 테스트"),
    "common": ("tests/unit/common/", "공통 유틸 테스트"),
}


def build_command(target: str, coverage: bool, verbose: bool) -> list:
    path, _ = TARGETS[target]
    cmd = [sys.executable, "-m", "pytest", path]
    if verbose:
        cmd.append("-v")
    if coverage:
        cmd.extend(["--cov=sentinelnet", "--cov-report=term-missing"])
    return cmd


def main() -> int:
    parser = argparse.ArgumentParser(description="SentinelNet 테스트 실행")
    parser.add_argument("--type", choices=sorted(TARGETS), default="all", help="실행할 테스트 영역")
    parser.add_argument("--coverage", action="store_true", help="커버리지 측정 (pytest-cov)")
    parser.add_argument("--verbose", action="store_true", help="상세 출력")
    args = parser.parse_args()

    cmd = build_command(args.type, args.coverage, args.verbose)
    print(f"실행 중: {TARGETS[args.type][1]} ({' '.join(cmd[2:])})")

    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    print("성공" if result.returncode == 0 else "실패")
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
