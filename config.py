"""
Configuration module for the task scheduler.
Loads settings from environment variables or .env file.
任务调度器配置模块。
从环境变量或 .env 文件加载所有配置项。
"""

import os
from dotenv import load_dotenv

load_dotenv()  # 自动读取项目根目录的 .env 文件（若存在），优先级低于系统环境变量

# --- Dependency checks ---
# --- 依赖图校验 ---
CHECK_CYCLES = os.getenv("CHECK_CYCLES", "true").lower() == "true"     # 解析完成后用 Kahn 算法检查依赖环
FAIL_ON_CYCLE = os.getenv("FAIL_ON_CYCLE", "false").lower() == "true"  # 发现依赖环时直接报错（默认只告警，最终由死锁检测兜底）

# --- Reporting ---
# --- 日志输出 ---
TIMING_PRECISION = int(os.getenv("TIMING_PRECISION", "3"))  # 任务耗时 / Gflops 日志保留的小数位数
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()          # 非 verbose 模式下的日志级别
