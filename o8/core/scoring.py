"""
O8 Transparency Score

A 0-100 summary that rewards disclosure depth. Display only: verification
never consults it.

    50                                   base, for declaring at all
    + min(len(methodology) / 10, 20)     methodology detail
    + min(2 * stack items, 15)           DAWs, plugins, AI models
    + min(3 * source items, 15)          source material, samples, stems

The sum is rounded half up and capped at 100.
"""

import math

from o8.core.declaration import AI_PHASES, AIContribution, Declaration


BASE_SCORE = 50
MAX_METHODOLOGY_BONUS = 20
MAX_STACK_BONUS = 15
MAX_SOURCE_BONUS = 15


def calculate_average_ai(contribution: AIContribution) -> float:
    """Mean AI share across the five production phases."""
    return sum(getattr(contribution, phase) for phase in AI_PHASES) / len(AI_PHASES)


def transparency_score(declaration: Declaration) -> int:
    """
    Score how much a declaration discloses.

    Args:
        declaration: Validated declaration

    Returns:
        int: Score between 50 and 100
    """
    stack = declaration.creative_stack
    provenance = declaration.provenance

    methodology_bonus = min(len(declaration.production_intelligence.methodology) / 10, MAX_METHODOLOGY_BONUS)

    stack_items = len(stack.daws) + len(stack.plugins) + len(stack.ai_models)
    stack_bonus = min(stack_items * 2, MAX_STACK_BONUS)

    source_items = len(provenance.source_material) + len(provenance.samples) + len(provenance.stems)
    source_bonus = min(source_items * 3, MAX_SOURCE_BONUS)

    score = BASE_SCORE + methodology_bonus + stack_bonus + source_bonus
    return int(math.floor(min(score, 100) + 0.5))
