"""
Prompt construction for image and video generation.

Two image templates are available:
- landmark: isometric miniature scene built around the city's landmarks
- drink: the same city floating in the locally typical morning drink

Style mode picks one of them; random mode flips a fresh coin on every call.
"""

import logging
import random

from banana_weather.config import Settings, load_prompt
from banana_weather.models.schemas import StyleMode

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_PROMPT = (
    "The camera moves in parallax as the elements in the image move naturally, "
    "while the forecast data—the bold title—remains fixed."
)

LANDMARK_TEMPLATE = "landmark"
DRINK_TEMPLATE = "drink"


def select_template(
    style_mode: int,
    rng: random.Random | None = None,
) -> str:
    """
    Choose the image template for a style mode.

    Args:
        style_mode: 0=random, 1=landmark, 2=drink (unknown values act as random)
        rng: Random source (module-level random if None)

    Returns:
        Template name
    """
    if style_mode == StyleMode.CLASSIC:
        return LANDMARK_TEMPLATE
    if style_mode == StyleMode.DRINK:
        return DRINK_TEMPLATE

    coin = (rng or random).randrange(2)
    return DRINK_TEMPLATE if coin == 1 else LANDMARK_TEMPLATE


def build_image_prompt(
    location_name: str,
    extra_context: str = "",
    style_mode: int = StyleMode.RANDOM,
    settings: Settings | None = None,
    rng: random.Random | None = None,
) -> str:
    """
    Build the full image prompt for a location.

    Args:
        location_name: Canonical location name
        extra_context: Optional free-text setting hint
        style_mode: Template selector
        settings: Settings used to locate prompt files
        rng: Random source for random mode

    Returns:
        Prompt text ready for the image model
    """
    template_name = select_template(style_mode, rng)
    template = load_prompt("image", template_name, settings)

    logger.info(
        f"Selected {template_name} prompt for {location_name} (mode: {int(style_mode)})"
    )

    if template_name == LANDMARK_TEMPLATE:
        prompt = f"{template}\n\nCity name: {location_name}"
    else:
        prompt = template.replace("[CITY]", location_name)
        prompt += "\n\nDRINK: the most common AM drink for this location"

    if extra_context:
        prompt += f"\n\nContext/Setting: {extra_context}"

    return prompt
