"""
Discord rendering for the math quiz game: embeds and button views.
"""
import logging
from typing import Awaitable, Callable, Optional

import discord

from .models import RoundResult, SessionState, SessionSummary

logger = logging.getLogger(__name__)

AnswerHandler = Callable[[discord.Interaction, int, int], Awaitable[None]]
RestartHandler = Callable[[discord.Interaction], Awaitable[None]]
ExpireHandler = Callable[[], Awaitable[None]]

QUESTION_COLOR = 0x3399ff
CORRECT_COLOR = 0x00ff00
INCORRECT_COLOR = 0xff0000
SUMMARY_COLOR = 0xffaa00


def build_question_embed(state: SessionState) -> discord.Embed:
    """Render the question currently in progress."""
    embed = discord.Embed(
        title=f"🎯 Question {state.current_round}/{state.total_rounds}",
        description=f"# {state.question.text}",
        color=QUESTION_COLOR
    )
    embed.add_field(name="📊 Score", value=f"{state.score}/{state.rounds_played}", inline=True)
    embed.add_field(name="🎚️ Difficulty", value=str(state.difficulty), inline=True)
    embed.set_footer(text="Pick the correct product")
    return embed


def build_feedback_embed(state: SessionState, result: RoundResult) -> discord.Embed:
    """Render a resolved round."""
    if result.is_correct:
        title = "✅ Correct!"
        color = CORRECT_COLOR
        description = f"{state.question.text} = **{result.correct_answer}**"
    else:
        title = "❌ Incorrect"
        color = INCORRECT_COLOR
        description = (
            f"{state.question.text} = **{result.correct_answer}**\n"
            f"You picked {result.selected_answer}"
        )

    embed = discord.Embed(
        title=f"{title} - Question {result.rounds_played}/{result.total_rounds}",
        description=description,
        color=color
    )
    embed.add_field(name="📊 Score", value=f"{result.score}/{result.rounds_played}", inline=True)
    embed.set_footer(text="Final results coming up" if result.is_final_round else "Next question coming up")
    return embed


def build_summary_embed(summary: SessionSummary) -> discord.Embed:
    """Render the result of a completed session."""
    embed = discord.Embed(
        title="🎉 Game Over!",
        description=f"You scored **{summary.text}**",
        color=SUMMARY_COLOR
    )
    embed.add_field(name="🏆 Accuracy", value=f"{summary.percentage:.0f}%", inline=True)
    embed.add_field(name="🎚️ Difficulty", value=str(summary.difficulty), inline=True)
    embed.set_footer(text="Press Play Again or use /start to change the settings")
    return embed


class AnswerButton(discord.ui.Button):
    """One of the four answer choices."""

    def __init__(self, index: int, value: int, row: int):
        super().__init__(
            label=str(value),
            style=discord.ButtonStyle.primary,
            row=row
        )
        self.index = index

    async def callback(self, interaction: discord.Interaction):
        await self.view.on_answer(interaction, self.index)


class AnswerView(discord.ui.View):
    """Four answer buttons laid out in two rows of two, live for one question."""

    def __init__(self, state: SessionState, on_answer: AnswerHandler, timeout: Optional[float] = 600):
        super().__init__(timeout=timeout)
        self._on_answer = on_answer
        self.round_number = state.current_round
        for index, value in enumerate(state.answer_set):
            self.add_item(AnswerButton(index, value, row=index // 2))

    async def on_answer(self, interaction: discord.Interaction, index: int) -> None:
        # Only the first click on a question is scored
        if self.is_finished():
            try:
                await interaction.response.send_message(
                    "⏳ This question has already been answered.",
                    ephemeral=True
                )
            except discord.HTTPException as e:
                logger.warning(f"Failed to reject late answer click: {e}")
            return

        self.stop()
        await self._on_answer(interaction, index, self.round_number)

    def show_result(self, result: RoundResult) -> None:
        """Disable the buttons and colour the chosen and correct answers."""
        for item in self.children:
            if not isinstance(item, AnswerButton):
                continue
            item.disabled = True
            if item.index == result.correct_index:
                item.style = discord.ButtonStyle.success
            elif item.index == result.selected_index:
                item.style = discord.ButtonStyle.danger
            else:
                item.style = discord.ButtonStyle.secondary
        self.stop()


class PlayAgainView(discord.ui.View):
    """Offered on the summary to replay with the same settings."""

    def __init__(
        self,
        on_restart: RestartHandler,
        on_expire: Optional[ExpireHandler] = None,
        timeout: Optional[float] = 300
    ):
        super().__init__(timeout=timeout)
        self._on_restart = on_restart
        self._on_expire = on_expire

    @discord.ui.button(label="Play Again", style=discord.ButtonStyle.success, emoji="🔄")
    async def play_again(self, interaction: discord.Interaction, button: discord.ui.Button):
        button.disabled = True
        self.stop()
        await self._on_restart(interaction)

    async def on_timeout(self) -> None:
        if self._on_expire is not None:
            await self._on_expire()
