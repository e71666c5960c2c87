import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from pathlib import Path
from typing import Optional

from .config_manager import ConfigManager
from .models import RoundResult, SessionState
from .quiz_controller import QuizController
from .views import (
    AnswerView,
    PlayAgainView,
    build_feedback_embed,
    build_question_embed,
    build_summary_embed,
)

logger = logging.getLogger(__name__)

ROUND_CHOICES = [
    app_commands.Choice(name=str(rounds), value=rounds)
    for rounds in ConfigManager.ROUND_OPTIONS
]


def setup_logging(log_directory: str = "logs", level: int = logging.INFO):
    """Set up console and file logging for debugging and monitoring."""
    # Create logs directory if it doesn't exist
    logs_dir = Path(log_directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Configure root logger
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),  # File output
        ]
    )

    # Set up error-specific logging
    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


class QuizBot(commands.Bot):
    """Discord bot hosting multiplication quiz games"""

    def __init__(self, config=None):
        # Slash commands and buttons only need the guilds intent
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                self.apply_configuration()

            self.quiz_controller = QuizController(self.config_manager)

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def apply_configuration(self):
        """Apply the game section of the configuration file."""
        game_config = self.app_config.get('game', {})
        errors = self.config_manager.apply_settings(game_config)
        if errors:
            logger.warning(f"Using defaults for invalid settings: {errors}")
        else:
            logger.info("Configuration applied successfully")

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="settings", description="Show the current game settings")
        async def settings_command(interaction: discord.Interaction):
            await self.handle_settings(interaction)

        @self.tree.command(name="set_difficulty", description="Set the largest factor used in questions (2-12)")
        @app_commands.describe(level="Largest factor, from 2 to 12")
        async def set_difficulty_command(interaction: discord.Interaction, level: int):
            await self.handle_set_difficulty(interaction, level)

        @self.tree.command(name="set_rounds", description="Set how many questions a game lasts")
        @app_commands.choices(rounds=ROUND_CHOICES)
        async def set_rounds_command(interaction: discord.Interaction, rounds: app_commands.Choice[int]):
            await self.handle_set_rounds(interaction, rounds.value)

        @self.tree.command(name="start", description="Start a game with the current or given settings")
        @app_commands.describe(difficulty="Largest factor, from 2 to 12", rounds="Number of questions")
        @app_commands.choices(rounds=ROUND_CHOICES)
        async def start_command(
            interaction: discord.Interaction,
            difficulty: Optional[int] = None,
            rounds: Optional[app_commands.Choice[int]] = None
        ):
            await self.handle_start(interaction, difficulty, rounds.value if rounds else None)

        @self.tree.command(name="stop", description="Stop the current game")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show current game progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        """Cancel pending advances before disconnecting"""
        if self.quiz_controller is not None:
            self.quiz_controller.shutdown()
        await super().close()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            embed = discord.Embed(
                title="🧮 Math Quiz Commands",
                description="Answer multiplication questions by pressing one of four buttons.",
                color=0x6699ff
            )
            embed.add_field(
                name="⚙️ Settings",
                value=(
                    "`/settings` - Show current settings\n"
                    "`/set_difficulty` - Largest factor (2-12)\n"
                    "`/set_rounds` - Questions per game (5, 10, 15, 20)"
                ),
                inline=False
            )
            embed.add_field(
                name="🎮 Game",
                value=(
                    "`/start` - Start a game\n"
                    "`/stop` - End the game\n"
                    "`/status` - Show progress"
                ),
                inline=False
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_settings(self, interaction: discord.Interaction):
        """Handle /settings command"""
        try:
            await self.send_info_response(
                interaction,
                self.config_manager.get_settings_summary(),
                "⚙️ Current Settings"
            )
        except Exception as e:
            logger.error(f"Error in settings command: {e}")
            await self.send_error_response(interaction, "Failed to read settings", "❌ Settings Error")

    async def handle_set_difficulty(self, interaction: discord.Interaction, level: int):
        """Handle /set_difficulty command"""
        result = self.config_manager.set_difficulty(level)
        if result['success']:
            await self.send_info_response(interaction, result['user_message'], "⚙️ Difficulty Updated")
        else:
            await self.send_error_response(interaction, result['user_message'], "❌ Invalid Difficulty")

    async def handle_set_rounds(self, interaction: discord.Interaction, rounds: int):
        """Handle /set_rounds command"""
        result = self.config_manager.set_total_rounds(rounds)
        if result['success']:
            await self.send_info_response(interaction, result['user_message'], "⚙️ Rounds Updated")
        else:
            await self.send_error_response(interaction, result['user_message'], "❌ Invalid Round Count")

    async def handle_start(
        self,
        interaction: discord.Interaction,
        difficulty: Optional[int] = None,
        rounds: Optional[int] = None
    ):
        """Handle /start command"""
        if difficulty is not None:
            failure = self.config_manager.check_difficulty(difficulty)
            if failure is not None:
                await self.send_error_response(interaction, failure['user_message'], "❌ Invalid Difficulty")
                return

        result = self.quiz_controller.start_quiz(interaction.channel_id, difficulty, rounds)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Failed")
            return

        state = result['state']
        try:
            await interaction.response.send_message(
                embed=build_question_embed(state),
                view=AnswerView(state, self.handle_answer)
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to present first question for channel {interaction.channel_id}: {e}")
            await self.quiz_controller.stop_quiz(interaction.channel_id)

    async def handle_answer(
        self,
        interaction: discord.Interaction,
        index: int,
        round_number: Optional[int] = None
    ):
        """Handle an answer button press"""
        channel_id = interaction.channel_id
        message = interaction.message

        async def show_feedback(result: RoundResult, state: SessionState):
            view = AnswerView(state, self.handle_answer)
            view.show_result(result)
            await interaction.response.edit_message(embed=build_feedback_embed(state, result), view=view)

        async def show_next(state: SessionState):
            await self.present_state(message, channel_id, state)

        result = await self.quiz_controller.answer_question(
            channel_id,
            index,
            on_resolved=show_feedback,
            on_advance=show_next,
            expected_round=round_number
        )
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "⚠️ Answer Not Counted")

    async def present_state(self, message: discord.Message, channel_id: int, state: SessionState):
        """Replace the game message with the next question or the final summary"""
        async def expire():
            self.quiz_controller.discard_completed_session(channel_id)

        try:
            if state.is_session_complete:
                summary = self.quiz_controller.get_session_summary(channel_id)
                await message.edit(
                    embed=build_summary_embed(summary),
                    view=PlayAgainView(self.handle_restart, on_expire=expire)
                )
            else:
                await message.edit(
                    embed=build_question_embed(state),
                    view=AnswerView(state, self.handle_answer)
                )
        except discord.HTTPException as e:
            logger.error(f"Failed to update game message for channel {channel_id}: {e}")

    async def handle_restart(self, interaction: discord.Interaction):
        """Handle the Play Again button"""
        result = self.quiz_controller.restart_quiz(interaction.channel_id)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Restart Failed")
            return

        state = result['state']
        try:
            await interaction.response.edit_message(
                embed=build_question_embed(state),
                view=AnswerView(state, self.handle_answer)
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to present restarted game for channel {interaction.channel_id}: {e}")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        result = await self.quiz_controller.stop_quiz(interaction.channel_id)
        if not result['success']:
            await self.send_warning_response(interaction, result['user_message'], "⚠️ No Active Quiz")
            return

        state = result['state']
        embed = discord.Embed(
            title="🛑 Quiz Stopped",
            description=f"Final score: **{state.score}/{state.rounds_played}**",
            color=0xff6600
        )
        try:
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error in stop command: {e}")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        summary = self.quiz_controller.get_session_status_summary(interaction.channel_id)
        await self.send_info_response(interaction, summary, "📊 Quiz Status")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xffaa00
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not logging.getLogger().handlers:
        setup_logging()

    # Fall back to environment variable if no token provided
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Math Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
