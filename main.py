#!/usr/bin/env python3
"""
Group Quiz Bot - Main Entry Point

Reads config.json, applies the quiz settings, then connects to Discord.

Usage:
    python main.py [path/to/config.json]

config.json sections:
    bot      token (DISCORD_BOT_TOKEN in the environment wins)
    quiz     join_window_seconds, default_question_seconds, command_prefix, owner_ids
    logging  level, log_directory
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

from quizroom.config_manager import ConfigManager

TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"

logger = logging.getLogger("quizroom.main")


def load_config(config_path="config.json"):
    """Read the JSON config file, exiting with a message if it is missing or malformed."""
    config_path = Path(config_path)
    if not config_path.exists():
        print(f"❌ Error: {config_path} not found!")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in {config_path}: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading {config_path}: {e}")
        sys.exit(1)

    if not isinstance(config, dict):
        print(f"❌ Error: {config_path} must contain a JSON object")
        sys.exit(1)
    return config


def get_bot_token(config):
    """Return the bot token from DISCORD_BOT_TOKEN or the bot section, or None."""
    token = os.getenv('DISCORD_BOT_TOKEN') or (config.get('bot') or {}).get('token')
    if not token or token == TOKEN_PLACEHOLDER:
        return None
    return token


def build_config_manager(config):
    """
    Apply the quiz section of the config and check the result.

    Rejected values are logged and left at their defaults; the settings in
    effect are validated and summarized before the bot starts.

    Returns:
        (ConfigManager, list of problems found)
    """
    config_manager = ConfigManager()
    problems = [f"Ignored setting: {error}" for error in config_manager.apply_config(config)]

    validation = config_manager.validate_settings()
    problems.extend(validation['issues'])

    for problem in problems:
        logger.warning(problem, extra={'event_type': 'config_rejected'})
    logger.info(config_manager.get_settings_summary())
    return config_manager, problems


def setup_logging_from_config(config):
    """Set up console and file logging from the logging section."""
    log_config = config.get('logging') or {}
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    # discord.py logs every gateway event at INFO
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)


async def run_bot_with_config(config_path="config.json"):
    config = load_config(config_path)
    setup_logging_from_config(config)

    token = get_bot_token(config)
    if token is None:
        print("❌ Error: Discord bot token not configured!")
        print("Set DISCORD_BOT_TOKEN or the 'token' field of the bot section.")
        sys.exit(1)

    config_manager, problems = build_config_manager(config)
    if problems:
        print(f"⚠️ {len(problems)} quiz setting(s) were rejected, see the log for details")

    from quizroom.bot import run_bot
    await run_bot(token, config, config_manager)


if __name__ == "__main__":
    try:
        print("🤖 Starting Group Quiz Bot...")
        asyncio.run(run_bot_with_config(*sys.argv[1:2]))
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    except Exception as e:
        print(f"❌ Failed to start bot: {e}")
        sys.exit(1)
