"""
CLI 命令接口
"""

import argparse
import asyncio
import logging
import sys

import yaml

from ..core.errors import ConfigValidationError
from ..infra.config import (
    get_config,
    get_default_config,
    parse_config,
    reload_config,
    reset_config_cache,
    save_config,
)
from .daemon import BridgeDaemon

logger = logging.getLogger(__name__)


def _cli_options(args) -> dict:
    """Map parsed arguments onto config keys; unset flags stay None."""
    return {
        "directory": args.directory,
        "mode": args.mode,
        "whitelist": args.whitelist,
        "model": args.model,
        "process_missed": False if args.no_process_missed else None,
        "missed_threshold_mins": args.missed_threshold,
        "verbose": True if args.verbose else None,
        "agent_name": args.agent_name,
        "join_group": args.join_group,
        "allow_all_group_participants": True if args.allow_all_group_participants else None,
        "system_prompt": args.system_prompt,
        "system_prompt_append": args.system_prompt_append,
    }


def cmd_start(args):
    """启动桥接守护进程"""
    file_config = get_config(args.config)
    try:
        config = parse_config(_cli_options(args), file_config)
    except ConfigValidationError as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)

    log_level = args.log_level or ("DEBUG" if config.verbose else None)
    log_level = log_level or str((file_config.get("logging") or {}).get("level") or "INFO")
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    daemon = BridgeDaemon(config)
    asyncio.run(daemon.start())


def cmd_config(args):
    """配置管理"""
    if args.init:
        save_config(get_default_config(), args.config)
        reset_config_cache()
        print("默认配置已写入")
        return
    config = reload_config(args.config)
    print(yaml.dump(config, default_flow_style=False, allow_unicode=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="wabridge - WhatsApp to AI agent bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # 全局参数
    parser.add_argument("--config", type=str, help="配置文件路径")
    parser.add_argument("--log-level", type=str,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="日志级别")

    subparsers = parser.add_subparsers(dest="command", help="子命令")

    # start 命令
    parser_start = subparsers.add_parser("start", help="启动桥接守护进程")
    parser_start.add_argument("-d", "--directory", type=str, help="工作目录")
    parser_start.add_argument("-m", "--mode", type=str, help="权限模式: plan | normal | dangerously-skip-permissions")
    parser_start.add_argument("-w", "--whitelist", type=str, help="允许的号码，逗号分隔")
    parser_start.add_argument("--model", type=str, help="模型（opus / sonnet / haiku 或完整 id）")
    parser_start.add_argument("--agent-name", type=str, help="Agent 显示名称")
    parser_start.add_argument("--join-group", type=str, help="群组邀请链接或邀请码")
    parser_start.add_argument("--allow-all-group-participants", action="store_true",
                              help="群组模式下不检查白名单")
    parser_start.add_argument("--no-process-missed", action="store_true", help="忽略启动前的离线消息")
    parser_start.add_argument("--missed-threshold", type=int, help="离线消息处理时间窗口（分钟）")
    parser_start.add_argument("--system-prompt", type=str, help="替换默认系统提示词")
    parser_start.add_argument("--system-prompt-append", type=str, help="追加到系统提示词")
    parser_start.add_argument("-v", "--verbose", action="store_true", help="详细日志")
    parser_start.set_defaults(func=cmd_start)

    # config 命令
    parser_config = subparsers.add_parser("config", help="配置管理")
    parser_config.add_argument("--show", action="store_true", help="显示当前配置")
    parser_config.add_argument("--init", action="store_true", help="初始化默认配置")
    parser_config.set_defaults(func=cmd_config)

    return parser


def main():
    """CLI 主入口"""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
