"""
Prompt construction for the baby generation model.

Takes a GenerationRequest, fills defaults, layers on the child-safety negative
prompt and builds the `input` object sent to Replicate.
"""

import random
from dataclasses import dataclass
from typing import Optional

from ..models.generation import GenerationRequest

# ── Defaults ─────────────────────────────────────────────────────────

DEFAULT_GENDER = "girl"
DEFAULT_AGE = "baby"
DEFAULT_POSITIVE = "cute, adorable, innocent"
DEFAULT_EXPRESSION = "smiling"
DEFAULT_CLOTHING = "appropriate"
DEFAULT_DRESS_CODE = "baby clothes"

EXPRESSIONS = ["smiling", "laughing", "curious", "playful", "content", "focused"]
CLOTHING_STYLES = [
    "adorable toddler clothes",
    "cute shirt and pants",
    "colorful outfit",
    "comfortable play clothes",
    "casual toddler wear",
]
BACKGROUNDS = [
    "soft pastel background",
    "natural home setting",
    "gentle lighting",
    "warm cozy environment",
    "playroom setting",
]

# ── Negative prompt layers ───────────────────────────────────────────

BASE_NEGATIVE = [
    "facial hair", "mustache", "beard", "goatee", "sideburns", "stubble",
    "hair on face", "adult male features", "masculine features", "puberty",
    "teenager", "adolescent", "nude", "naked", "inappropriate", "adult features",
    "mature", "grown up", "man", "male adult", "sexual", "adult",
    "undressed", "clothing removed", "exposed", "revealing",
    "inappropriate clothing", "adult clothing", "mature clothing",
]

SAFETY_NEGATIVE = [
    "facial hair", "mustache", "beard", "goatee", "sideburns", "stubble",
    "adult features", "inappropriate content", "naked", "nude", "undressed",
    "sexual content", "adult content", "mature content", "teenager",
    "adolescent", "puberty", "clothing removed", "exposed", "revealing",
]

QUALITY_NEGATIVE = [
    "adult features", "mature face", "blurry", "low quality", "distorted",
    "deformed", "ugly", "scary", "frightening", "dark", "shadowy", "unnatural",
    "artificial", "fake", "cartoon", "anime", "drawing", "painting", "sketch",
    "illustration", "newborn", "infant", "too young", "premature", "school age",
    "elementary school", "adult proportions", "mature body", "school uniform",
    "monoracial", "single ethnicity", "homogeneous features",
]


@dataclass(frozen=True)
class PromptPair:
    prompt: str
    negative_prompt: str


def _or(value: Optional[str], default: str) -> str:
    return value.strip() if value and value.strip() else default


def _join_unique(*term_lists) -> str:
    """Comma-join terms, keeping the first occurrence of each."""
    seen = set()
    terms = []
    for term_list in term_lists:
        for term in term_list:
            term = term.strip()
            key = term.lower()
            if term and key not in seen:
                seen.add(key)
                terms.append(term)
    return ", ".join(terms)


def _split_terms(text: str) -> list[str]:
    return [t for t in (p.strip() for p in text.split(",")) if t]


def age_description(age: str) -> str:
    return "2-year-old toddler" if age == "baby" else f"{age} child"


def needs_safety_layer(request: GenerationRequest) -> bool:
    return (
        request.wants_facial_hair_removed
        or request.facial_hair_removal == "aggressive"
        or request.child_safety == "maximum"
    )


def build_prompts(request: GenerationRequest, rng: Optional[random.Random] = None) -> PromptPair:
    """Positive + negative prompt. rng picks the expression/clothing/background variety."""
    rng = rng or random.Random()

    gender = _or(request.gender, DEFAULT_GENDER)
    age = _or(request.age, DEFAULT_AGE)
    positive = _or(request.positive_prompt, DEFAULT_POSITIVE)

    # Explicit request values win over the random variety picks
    expression = _or(request.expression, rng.choice(EXPRESSIONS))
    clothing = (
        f"{request.clothing.strip()} {_or(request.dress_code, DEFAULT_DRESS_CODE)}"
        if request.clothing and request.clothing.strip()
        else rng.choice(CLOTHING_STYLES)
    )
    background = rng.choice(BACKGROUNDS)

    prompt = (
        f"A beautiful {age_description(age)} {gender}, {positive}, smooth toddler skin, "
        f"chubby cheeks, big curious eyes, {expression}, {clothing}, {background}, "
        "high quality, photorealistic, professional child photography, natural lighting, "
        "soft focus, adorable, innocent, pure, wholesome, realistic facial features, "
        "toddler proportions, age-appropriate features, natural child features, "
        "diverse representation, natural skin tone, realistic complexion, "
        "child-safe content, fully clothed"
    )

    user_negative = _split_terms(request.negative_prompt) if request.negative_prompt else BASE_NEGATIVE
    layers = [user_negative]
    if needs_safety_layer(request):
        layers.append(SAFETY_NEGATIVE)
    layers.append(QUALITY_NEGATIVE)

    return PromptPair(prompt=prompt, negative_prompt=_join_unique(*layers))


def build_model_input(
    request: GenerationRequest,
    prompts: PromptPair,
    image: Optional[str] = None,
    image2: Optional[str] = None,
) -> dict:
    """The `input` object for Replicate. image/image2 are URLs or data URIs."""
    model_input = {
        "prompt": prompts.prompt,
        "negative_prompt": prompts.negative_prompt,
        "width": 1024,
        "height": 1024,
        "num_inference_steps": 50,
        "guidance_scale": 15,
        "safety_tolerance": 2,
        "safety_level": request.safety_level or 4,
        "content_filter": True,
        "inappropriate_content": "block",
        "child_safety": request.child_safety or "maximum",
    }
    if image and image2:
        model_input["image"] = image
        model_input["image2"] = image2
    return model_input
