"""Category inference for shared images.

Every gallery entry carries a topical category (``portrait``, ``sci-fi``,
``vintage`` ...).  Users may choose one when sharing; otherwise it is inferred
here from the free-text prompt and the rendering style label.

Scoring
-------
For each category in table order:

- every keyword found as a whole token scores ``2 * weight``, every keyword
  found only inside a longer word scores ``1 * weight``;
- the sum is multiplied by the category priority;
- if any of the category's curated phrases occurs, a flat
  :data:`PHRASE_BONUS` is added once.

The highest score wins and ties go to the earlier category, so the table order
is part of the behaviour.  When nothing matches, the style label is looked up
exactly and then by substring in :data:`STYLE_CATEGORIES`; if that fails too
the caller's fallback (or the table default) is returned.

The module is pure: the tables are immutable tuples and :func:`classify` never
raises, so it is safe to share one :class:`CategoryScorer` across requests.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

DEFAULT_CATEGORY = "portrait"
UNCATEGORIZED = "other"

TOKEN_MATCH_SCORE = 2
SUBSTRING_MATCH_SCORE = 1
PHRASE_BONUS = 5.0


@dataclass(frozen=True)
class CategoryRule:
    """Keyword rule for one category.

    Attributes:
        category: Category tag produced when this rule wins.
        keywords: ``(keyword, weight)`` pairs, lower case.
        priority: Multiplier applied to the keyword score.
        phrases: Multi-word phrases granting :data:`PHRASE_BONUS`.
    """

    category: str
    keywords: tuple[tuple[str, float], ...]
    priority: float = 1.0
    phrases: tuple[str, ...] = ()


@dataclass(frozen=True)
class CategoryWeightTable:
    """Ordered keyword rules plus the style-label fallback table."""

    rules: tuple[CategoryRule, ...]
    style_categories: tuple[tuple[str, str], ...]
    default_category: str = DEFAULT_CATEGORY

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(rule.category for rule in self.rules)


def _kw(*words: str, weight: float = 1.0) -> tuple[tuple[str, float], ...]:
    return tuple((word, weight) for word in words)


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category="sci-fi",
        keywords=_kw(
            "sci-fi", "science fiction", "future", "futuristic", "space",
            "spaceship", "cyber", "cyberpunk", "robot", "android", "alien",
            "neon", "hologram",
        ),
        priority=1.3,
        phrases=("space station", "science fiction", "cyberpunk city", "outer space"),
    ),
    CategoryRule(
        category="vintage",
        keywords=_kw(
            "vintage", "retro", "old style", "old photo", "classic", "sepia",
            "antique", "nostalgic", "1950s", "1960s", "1970s", "1980s",
        ),
        priority=1.5,
        phrases=("vintage photograph", "sepia toned", "old photograph", "photograph style"),
    ),
    CategoryRule(
        category="anime",
        keywords=_kw("anime", "cartoon", "manga", "comic", "chibi", "애니메이션", "만화", "애니"),
        priority=1.4,
        phrases=("anime style", "studio ghibli", "cel shaded"),
    ),
    CategoryRule(
        category="fantasy",
        keywords=_kw(
            "fantasy", "magical", "magic", "dragon", "wizard", "elf", "fairy",
            "enchanted", "mythical",
        ),
        priority=1.2,
        phrases=("fantasy world", "magical forest", "fairy tale"),
    ),
    CategoryRule(
        category="fashion",
        keywords=_kw(
            "fashion", "model", "runway", "vogue", "luxury", "editorial",
            "photoshoot", "outfit", "couture",
        )
        + _kw("style", weight=0.5),
        priority=0.9,
        phrases=("fashion photography", "high fashion", "runway show", "editorial shoot"),
    ),
    CategoryRule(
        category="portrait",
        keywords=_kw(
            "portrait", "face", "selfie", "headshot", "profile", "person",
            "인물", "얼굴", "셀카", "프로필",
        ),
        priority=0.85,
        phrases=("studio portrait", "close-up portrait", "professional headshot"),
    ),
    CategoryRule(
        category="landscape",
        keywords=_kw(
            "landscape", "scenery", "nature", "mountain", "forest", "beach",
            "sea", "ocean", "waterfall", "자연", "풍경", "바다",
        ),
        priority=1.0,
        phrases=("mountain landscape", "sunset over", "natural scenery"),
    ),
    CategoryRule(
        category="urban",
        keywords=_kw("city", "urban", "architecture", "street", "skyline", "building", "downtown"),
        priority=1.0,
        phrases=("city skyline", "street photography", "urban landscape"),
    ),
    CategoryRule(
        category="animals",
        keywords=_kw("animal", "wildlife", "pet", "dog", "cat", "bird", "puppy", "kitten"),
        priority=1.6,
        phrases=("wildlife photography", "animal portrait"),
    ),
    CategoryRule(
        category="abstract",
        keywords=_kw("abstract", "conceptual", "surreal", "geometric"),
        priority=1.0,
        phrases=("abstract art",),
    ),
)

# Exact lookups try every key; substring lookups walk this order.
STYLE_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("futuristic", "sci-fi"),
    ("sci-fi", "sci-fi"),
    ("cyber", "sci-fi"),
    ("space", "sci-fi"),
    ("retro", "vintage"),
    ("vintage", "vintage"),
    ("old style", "vintage"),
    ("classic", "vintage"),
    ("anime", "anime"),
    ("cartoon", "anime"),
    ("digital_illustration/pixel_art", "anime"),
    ("digital_illustration/hand_drawn", "anime"),
    ("digital_illustration/infantile_sketch", "anime"),
    ("digital_illustration", "anime"),
    ("fantasy", "fantasy"),
    ("magical", "fantasy"),
    ("realistic_image/studio_portrait", "portrait"),
    ("realistic_image/natural_light", "portrait"),
    ("realistic_image", "portrait"),
    ("realistic", "portrait"),
    ("portrait", "portrait"),
    ("photo", "portrait"),
    ("highfashion", "fashion"),
    ("high fashion", "fashion"),
    ("photofashion", "fashion"),
    ("fashion", "fashion"),
    ("luxury", "fashion"),
    ("vogue", "fashion"),
    ("runway", "fashion"),
    ("modeling", "fashion"),
    ("editorial", "fashion"),
    ("landscape", "landscape"),
    ("nature", "landscape"),
    ("scenery", "landscape"),
    ("city", "urban"),
    ("urban", "urban"),
    ("architecture", "urban"),
    ("other", UNCATEGORIZED),
)

DEFAULT_TABLE = CategoryWeightTable(rules=CATEGORY_RULES, style_categories=STYLE_CATEGORIES)


@lru_cache(maxsize=512)
def _token_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)")


def _keyword_score(text: str, keyword: str) -> int:
    if keyword not in text:
        return 0
    if _token_pattern(keyword).search(text):
        return TOKEN_MATCH_SCORE
    return SUBSTRING_MATCH_SCORE


class CategoryScorer:
    """Weighted keyword classifier over a :class:`CategoryWeightTable`."""

    def __init__(self, table: CategoryWeightTable = DEFAULT_TABLE):
        self.table = table
        self._styles = dict(table.style_categories)

    def score(self, description: str) -> dict[str, float]:
        """Return the score of every category, in table order.

        Args:
            description: Free-text prompt.

        Returns:
            Mapping of category tag to its final score.
        """
        text = (description or "").lower()
        scores: dict[str, float] = {}
        for rule in self.table.rules:
            raw = sum(_keyword_score(text, keyword) * weight for keyword, weight in rule.keywords)
            total = raw * rule.priority
            if any(phrase in text for phrase in rule.phrases):
                total += PHRASE_BONUS
            scores[rule.category] = total
        return scores

    def classify_style(self, style_label: str) -> str | None:
        """Map a rendering style label to a category, or ``None``."""
        style = (style_label or "").strip().lower()
        if not style:
            return None
        if style in self._styles:
            return self._styles[style]
        for key, category in self.table.style_categories:
            if key in style:
                return category
        return None

    def classify(
        self,
        description: str,
        style_label: str,
        *,
        fallback: str | None = None,
    ) -> str:
        """Infer the category of an image.

        Args:
            description: Free-text prompt (any case).
            style_label: Rendering style label, may be empty.
            fallback: Category returned when neither the prompt nor the style
                matches anything.  Defaults to the table default.

        Returns:
            A non-empty category tag.
        """
        description = description if isinstance(description, str) else ""
        style_label = style_label if isinstance(style_label, str) else ""
        if not description.strip() and not style_label.strip():
            return self.table.default_category

        best_category = None
        best_score = 0.0
        for category, value in self.score(description).items():
            # strict comparison keeps the earlier category on ties
            if value > best_score:
                best_category, best_score = category, value
        if best_category is not None:
            return best_category

        return self.classify_style(style_label) or fallback or self.table.default_category


default_scorer = CategoryScorer()


def classify(description: str, style_label: str, *, fallback: str | None = None) -> str:
    """Classify with the default table.  See :meth:`CategoryScorer.classify`."""
    return default_scorer.classify(description, style_label, fallback=fallback)
