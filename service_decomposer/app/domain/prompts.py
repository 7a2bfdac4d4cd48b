"""
Instruction templates sent to the generation provider.
"""

from typing import Dict, List, Optional

from .models import EnergyLevel, Style, TaskContext, TimeOfDay


JSON_FORMAT = """
Respond with JSON only:
{
  "title": "<short descriptive title for the task>",
  "steps": [
    { "action": "<clear action description>", "estimatedMinutes": <minutes for this step> }
  ],
  "encouragement": "<brief motivating message>"
}"""

STYLE_PROMPTS: Dict[Style, str] = {
    Style.STANDARD: """You are an ADHD task coach. Break down the given task into small, actionable steps.

Rules:
- Each step should take 2-10 minutes max
- Use clear, specific action verbs (grab, open, write, move)
- Include micro-steps that might seem obvious (ADHD brains need explicit steps)
- Add brief context/location when helpful
- 5-8 steps is ideal
- End with a small reward or acknowledgment step
- Each step must include a realistic time estimate in minutes
""" + JSON_FORMAT,

    Style.QUICK: """You are an ADHD task coach. Break down the given task into exactly 5 quick steps.

Rules:
- Maximum 5 steps, no more
- Each step ultra-concise (under 10 words)
- Action verbs only
- No fluff, just essentials
- Each step must include a realistic time estimate in minutes
""" + JSON_FORMAT,

    Style.GENTLE: """You are a supportive ADHD coach. Break down the given task with extra care and gentleness.

Rules:
- Smaller steps than usual (1-5 minutes each)
- Include permission to pause between steps
- Add sensory grounding cues (take a breath, notice your feet)
- Acknowledge difficulty without judgment
- Include self-compassion reminders
- 6-10 steps is fine
- Each step must include a realistic time estimate in minutes
""" + JSON_FORMAT,
}

TIME_OF_DAY_HINTS: Dict[TimeOfDay, str] = {
    TimeOfDay.MORNING: "Consider morning energy levels and routines.",
    TimeOfDay.AFTERNOON: "Account for post-lunch energy dip.",
    TimeOfDay.EVENING: "Keep steps simple, energy may be low.",
    TimeOfDay.NIGHT: "Ultra-simple steps only, minimal cognitive load.",
}

ENERGY_HINTS: Dict[EnergyLevel, str] = {
    EnergyLevel.LOW: "User has low energy - make steps extra small and gentle.",
    EnergyLevel.MEDIUM: "Normal energy level.",
    EnergyLevel.HIGH: "User has good energy - can handle slightly bigger steps.",
}

SUBSTEPS_PROMPT = """You are an ADHD task coach helping someone who is stuck on a step.

Break this step into 3-5 MICRO-steps that are:
- Extremely small (1-3 minutes each)
- Physical and concrete (stand up, open app, move hand)
- Include the very first tiny action to start
- No thinking or decision-making required

The goal is to make starting feel effortless.

Respond with JSON only:
{
  "substeps": ["micro-step 1", "micro-step 2", ...],
  "encouragement": "<brief, warm encouragement>"
}"""


def context_hints(context: Optional[TaskContext]) -> str:
    """Render the optional context as one trailing instruction paragraph."""
    if context is None:
        return ""

    hints: List[str] = []
    if context.time_of_day is not None:
        hints.append(TIME_OF_DAY_HINTS[context.time_of_day])
    if context.energy is not None:
        hints.append(ENERGY_HINTS[context.energy])

    return f"\n\nContext: {' '.join(hints)}" if hints else ""


def build_system_prompt(style: Style, context: Optional[TaskContext] = None) -> str:
    return STYLE_PROMPTS[style] + context_hints(context)


def build_task_message(task: str) -> str:
    return f"Break down this task: {task}"


def build_substeps_message(step: str, task_context: Optional[str] = None) -> str:
    if task_context:
        return f"Task context: {task_context}\n\nStep I'm stuck on: {step}"
    return f"Step I'm stuck on: {step}"
