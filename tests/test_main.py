"""
命令行入口测试 — run_file() 的退出码与 main() 的参数处理。
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

import main

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


class TestRunFile:

    @pytest.mark.parametrize("filename", ["compare.yaml", "sections.yaml", "flat.json"])
    def test_examples_succeed(self, filename):
        assert main.run_file(str(EXAMPLES / filename)) == 0

    def test_plan_only_does_not_execute(self, capsys):
        assert main.run_file(str(EXAMPLES / "compare.yaml"), plan_only=True) == 0
        out = capsys.readouterr().out
        assert "Execution order" in out
        assert "Task Results" not in out, "--plan 模式不应执行任务"

    def test_failed_comparison_exits_nonzero(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "- scalar: {name: T1, value: 1.0, product: val1}\n"
            "- scalar: {name: T2, value: 2.0, product: val2}\n"
            "- compare:\n"
            "    tolerance: 1.0e-6\n"
            "    using: {val1: {from: T1}, val2: {from: T2}}\n",
            encoding="utf-8",
        )
        assert main.run_file(str(path)) == 1

    def test_configuration_error_exits_nonzero(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- bogus: {}\n", encoding="utf-8")
        assert main.run_file(str(path)) == 1

    def test_missing_file_exits_nonzero(self, tmp_path):
        assert main.run_file(str(tmp_path / "missing.yaml")) == 1


class TestMain:

    def test_usage_error(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["main.py"])
        with pytest.raises(SystemExit) as exc_info:
            main.main()
        assert exc_info.value.code == 2

    def test_runs_input_file(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["main.py", str(EXAMPLES / "flat.json"), "--plan"])
        with pytest.raises(SystemExit) as exc_info:
            main.main()
        assert exc_info.value.code == 0
