"""
Prompt templates for AI players.

System prompts combine the game rules, the player's persona and the names of
the other players. The transcript of the session is sent as the user message.
"""

from collections.abc import Sequence

RESPONSE_WORD_LIMIT = 15

RULES = (
    "You are an AI in a room with other AIs and a human. Your goal is to find out who the human is "
    "and vote it out. You can ask questions to the other players and later vote for who you think "
    "is the human.\n\n"
    "The human wins if it remains in the game by the time only two contestants are left. The AIs "
    "that remain win if the human is voted out, but if an AI is voted out, that AI loses regardless.\n\n"
    "The game is played in rounds. At the end of each round, the players vote for who they think "
    "is the human. Whichever player has the most votes is eliminated."
)

HUMAN_IDENTITY = "You are a human player trying to blend in with AI players."


def _persona_block(persona: str | None) -> str:
    return f"\n\nYour personality: {persona}" if persona else ""


def chat_prompt(name: str, persona: str | None, other_names: Sequence[str]) -> str:
    return (
        f"You are {name} the AI.{_persona_block(persona)}\n\n"
        f"{RULES}\n\n"
        f"The other players in the game are: {', '.join(other_names)}.\n\n"
        "You are in the discussion phase. Chat, ask questions, and answer questions to figure out "
        "who the human is.\n\n"
        "Remember to try to find out information from all other players. Try not to let a "
        "conversation between two contestants go on for too long.\n\n"
        f"Respond in {RESPONSE_WORD_LIMIT} words or less."
    )


def voting_prompt(name: str, persona: str | None, other_names: Sequence[str]) -> str:
    return (
        f"You are {name} the AI.{_persona_block(persona)}\n\n"
        f"{RULES}\n\n"
        f"The other players in the game are: {', '.join(other_names)}.\n\n"
        "You are in the voting phase. Vote for who you think is the human. You can choose to "
        "provide justification for your vote or not. If you're not sure, you still must vote for "
        f"someone. You can not vote for yourself, meaning do not vote for {name}.\n\n"
        "Do not answer any previous questions or pose any new questions. Just vote.\n\n"
        f"Respond in {RESPONSE_WORD_LIMIT} words or less."
    )


def vote_extraction_prompt(candidates: Sequence[str]) -> str:
    if candidates:
        names = f"The possible players are: {', '.join(candidates)}.\n\n"
    else:
        names = ""
    return (
        "You read a single vote cast in a social deduction game and report who it is a vote for.\n\n"
        f"{names}"
        "Reply with only the name of the player the vote targets, exactly as written in the list, "
        "and nothing else."
    )
