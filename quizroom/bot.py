import discord
from discord.ext import commands
import logging
import os
from typing import List, Optional

from .config_manager import ConfigManager
from .models import (
    GroupCommand, Notice, PlayerRoundSummary, PrivateMessage, QuestionPayload,
    QuizProgress, RoundResult
)
from .quiz_controller import QuizController
from .transport import Transport

logger = logging.getLogger(__name__)

NOTICE_COLORS = {
    'error': 0xff0000,
    'info': 0x6699ff,
    'quiz_cancelled': 0xff6600,
    'quiz_finished': 0xffd700,
}
MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def render_notice(notice: Notice) -> discord.Embed:
    return discord.Embed(description=notice.text, color=NOTICE_COLORS.get(notice.kind, 0x00ff00))


def render_question(payload: QuestionPayload) -> discord.Embed:
    embed = discord.Embed(
        title=f"🎯 Question {payload.number}/{payload.total}",
        description=payload.text,
        color=0x00ff00
    )
    embed.add_field(
        name="Options",
        value="\n".join(f"**{i}.** {option}" for i, option in enumerate(payload.options, start=1)),
        inline=False
    )
    embed.add_field(name="⏱️ Time Limit", value=f"{payload.time_limit_seconds} seconds", inline=True)
    embed.set_footer(text="Answer by sending the option number to the bot in a direct message")
    return embed


def render_leaderboard_lines(result: RoundResult, limit: int = 10) -> List[str]:
    lines = []
    for entry in result.leaderboard[:limit]:
        marker = MEDALS.get(entry.rank, f"{entry.rank}.")
        lines.append(f"{marker} {entry.display_name} - {entry.score} pts")
    return lines


def render_round_result(result: RoundResult) -> discord.Embed:
    question = result.question
    embed = discord.Embed(
        title=f"⏰ Time's Up! - Question {result.question_index + 1}",
        description=question.text,
        color=0xff0000
    )
    embed.add_field(
        name="Options",
        value="\n".join(
            f"{i}. {option}" + (" ✅" if i == question.correct_option else "")
            for i, option in enumerate(question.options, start=1)
        ),
        inline=False
    )
    correct = [entry.display_name for entry in result.entries if entry.correct]
    embed.add_field(
        name=f"Correct answers ({len(correct)})",
        value=", ".join(correct) if correct else "Nobody this time",
        inline=False
    )
    lines = render_leaderboard_lines(result)
    embed.add_field(
        name="🏆 Leaderboard",
        value="\n".join(lines) if lines else "No players",
        inline=False
    )
    if result.is_final:
        embed.set_footer(text="That was the final question")
    return embed


def render_player_summary(summary: PlayerRoundSummary) -> discord.Embed:
    if summary.correct:
        description = (
            f"✅ Correct! You took {summary.elapsed_millis / 1000:.1f}s "
            f"and earned {summary.points_awarded} points."
        )
        color = 0x00ff00
    elif summary.answered:
        description = f"❌ Wrong. Correct: {summary.correct_text}."
        color = 0xff0000
    else:
        description = f"⌛ No answer. Correct: {summary.correct_text}."
        color = 0xffaa00
    embed = discord.Embed(
        title=f"Question {summary.question_number}",
        description=description,
        color=color
    )
    embed.set_footer(text=f"🏅 You are #{summary.rank} of {summary.total_players}")
    return embed


def render_progress(progress: QuizProgress) -> discord.Embed:
    embed = discord.Embed(title="📊 Quiz Status", color=0x6699ff)
    embed.add_field(name="Status", value=progress.state.value.capitalize(), inline=True)
    embed.add_field(name="Players", value=str(progress.player_count), inline=True)
    question = progress.current_question if progress.current_question > 0 else "-"
    embed.add_field(name="Question", value=f"{question}/{progress.total_questions}", inline=True)
    if progress.round_open:
        embed.set_footer(text="A question is open, answer in a direct message")
    return embed


def render_payload(payload) -> discord.Embed:
    """Turn an engine payload into a Discord embed."""
    if isinstance(payload, QuestionPayload):
        return render_question(payload)
    if isinstance(payload, RoundResult):
        return render_round_result(payload)
    if isinstance(payload, PlayerRoundSummary):
        return render_player_summary(payload)
    if isinstance(payload, QuizProgress):
        return render_progress(payload)
    if isinstance(payload, Notice):
        return render_notice(payload)
    return discord.Embed(description=str(payload))


class DiscordTransport(Transport):
    """Transport backed by a discord.py client: channels are groups, DMs are private channels."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def _channel(self, group_id: str):
        channel = self.client.get_channel(int(group_id))
        if channel is None:
            channel = await self.client.fetch_channel(int(group_id))
        return channel

    async def _user(self, identity_id: str):
        user = self.client.get_user(int(identity_id))
        if user is None:
            user = await self.client.fetch_user(int(identity_id))
        return user

    async def send_to_group(self, group_id: str, payload) -> None:
        channel = await self._channel(group_id)
        await channel.send(embed=render_payload(payload))

    async def send_to_private(self, identity_id: str, payload) -> None:
        user = await self._user(identity_id)
        await user.send(embed=render_payload(payload))

    async def set_group_restricted(self, group_id: str, restricted: bool) -> None:
        channel = await self._channel(group_id)
        await channel.set_permissions(
            channel.guild.default_role,
            send_messages=False if restricted else None,
            reason="Quiz in progress" if restricted else "Quiz ended"
        )

    async def resolve_display_name(self, identity_id: str) -> Optional[str]:
        try:
            user = await self._user(identity_id)
        except (ValueError, discord.HTTPException):
            return None
        return user.display_name if user else None


class QuizBot(commands.Bot):
    """Discord bot that runs group quizzes with answers sent by direct message"""

    def __init__(self, config=None, config_manager: Optional[ConfigManager] = None):
        intents = discord.Intents.default()
        intents.message_content = True  # Enable this in Discord Developer Portal
        intents.members = True

        self.app_config = config or {}
        if config_manager is None:
            config_manager = ConfigManager()
            config_manager.apply_config(self.app_config)
        self.config_manager = config_manager

        super().__init__(
            command_prefix=self.config_manager.get_command_prefix(),
            intents=intents,
            help_command=None
        )

        self.transport = DiscordTransport(self)
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.quiz_controller = QuizController(self.config_manager, self.transport)
        logger.info("Bot setup completed successfully")

    async def on_ready(self):
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    def is_owner_candidate(self, message: discord.Message) -> bool:
        """Configured owners and members who can manage the server may create quizzes."""
        if str(message.author.id) in self.config_manager.get_owner_ids():
            return True
        permissions = getattr(message.author, 'guild_permissions', None)
        return bool(permissions and (permissions.manage_guild or permissions.administrator))

    def to_event(self, message: discord.Message):
        """Map a Discord message to an engine event, or None if it should be ignored."""
        if message.author.bot:
            return None
        if message.guild is None:
            return PrivateMessage(sender_id=str(message.author.id), raw_text=message.content)
        if not message.content.strip().startswith(self.config_manager.get_command_prefix()):
            return None
        return GroupCommand(
            group_id=str(message.channel.id),
            sender_id=str(message.author.id),
            is_owner_candidate=self.is_owner_candidate(message),
            raw_text=message.content,
            mentioned_ids=[str(user.id) for user in message.mentions if not user.bot]
        )

    async def on_message(self, message: discord.Message):
        if self.quiz_controller is None:
            return
        event = self.to_event(message)
        if isinstance(event, PrivateMessage):
            await self.quiz_controller.handle_private_message(event)
        elif isinstance(event, GroupCommand):
            await self.quiz_controller.handle_group_command(event)

    async def close(self):
        if self.quiz_controller is not None:
            await self.quiz_controller.shutdown()
        await super().close()


async def run_bot(token=None, config=None, config_manager: Optional[ConfigManager] = None):
    """Run the bot with proper error handling"""
    # Fall back to environment variable if no token provided
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config, config_manager)

    try:
        logger.info("Starting Discord Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
