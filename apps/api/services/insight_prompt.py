"""
Insight prompt assembly.

Pure functions: the prompt is a deterministic function of the request and the
locale. Sections appear in a fixed order and each one is emitted only when its
input is present:

1. user profile (age + age band)
2. relationships
3. wishlist
4. self-reflection
5. previous analyses (the 5 most recent, each cut to 200 characters)
6. fixed instruction block (+ evolution section / age calibration when relevant)

All wording, including headings and field labels, comes from the locale.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from schemas import InsightRequest, MirrorRecord, PreviousAnalysis, RelationshipRecord, WishlistRecord

NOT_AVAILABLE = "N/A"
MAX_PREVIOUS_ANALYSES = 5
PREVIOUS_ANALYSIS_EXCERPT_CHARS = 200


@dataclass(frozen=True)
class AgeBand:
    low: int
    high: Optional[int]  # None = open-ended
    label: str

    def contains(self, age: int) -> bool:
        return age >= self.low and (self.high is None or age <= self.high)

    @property
    def range_label(self) -> str:
        return f"{self.low}+" if self.high is None else f"{self.low}-{self.high}"


AGE_BANDS = (
    AgeBand(18, 25, "Young adult (18-25) - a period of discovery and exploration"),
    AgeBand(26, 35, "Established adult (26-35) - a period of stabilization and building"),
    AgeBand(36, 45, "Mature adult (36-45) - a period of balance and achievement"),
    AgeBand(46, 55, "Experienced adult (46-55) - a period of wisdom and passing on"),
    AgeBand(56, 65, "Pre-senior (56-65) - a period of transition and taking stock"),
    AgeBand(66, None, "Senior (66+) - a period of serenity and sharing"),
)


def age_band(age: int) -> AgeBand:
    """Return the single band containing `age` (18 and over)."""
    for band in AGE_BANDS:
        if band.contains(age):
            return band
    raise ValueError(f"age must be 18 or over, got {age}")


@dataclass(frozen=True)
class PromptLocale:
    """Every piece of prompt wording for one language."""

    code: str
    language: str
    yes: str
    no: str
    date_format: str
    system: str
    intro: str
    profile_header: str
    age_line: str
    age_group_line: str
    age_band_labels: Tuple[str, ...]  # parallel to AGE_BANDS
    relationships_header: str
    relationship_line: str
    wishlist_header: str
    wishlist_line: str
    reflection_header: str
    accepted_flaws: str
    others_think: str
    growth_areas: str
    confidence: str
    previous_header: str
    tags_line: str
    requested_analysis: str
    evolution_section: str
    tone: str
    tone_with_history: str
    age_calibration: str

    def band_label(self, age: int) -> str:
        return self.age_band_labels[AGE_BANDS.index(age_band(age))]


EN = PromptLocale(
    code="en",
    language="English",
    yes="Yes",
    no="No",
    date_format="%m/%d/%Y",
    system=(
        "You are an expert life coach and psychologist who analyzes personal data to provide "
        "constructive, caring insights. "
        "Always respond in English and be empathetic. "
        "Use markdown formatting with clear sections."
    ),
    intro="Analyze this personal data and provide a caring, constructive psychological analysis:\n",
    profile_header="**USER PROFILE:**",
    age_line="Age: {age} years",
    age_group_line="Age group: {label}",
    age_band_labels=tuple(band.label for band in AGE_BANDS),
    relationships_header="**RELATIONSHIPS ({count} relationships):**",
    relationship_line=(
        "- Relationship {index}: Type: {type}, Rating: {rating}, "
        "Duration: {duration}, Location: {location}, Feelings: {feelings}"
    ),
    wishlist_header="**WISHES AND GOALS ({count} items):**",
    wishlist_line="- {title} (Category: {category}, Priority: {priority}, Completed: {done})",
    reflection_header="**SELF-REFLECTION:**",
    accepted_flaws="Accepted flaws: {items}",
    others_think="What others think: {items}",
    growth_areas="Growth areas: {items}",
    confidence="Confidence level: {level}/10",
    previous_header="**PREVIOUS ANALYSES (for context and progress):**",
    tags_line="  Tags: {tags}",
    requested_analysis=(
        "**REQUESTED ANALYSIS:**\n"
        "\n"
        "Provide a structured analysis with these markdown sections:\n"
        "\n"
        "## 🔍 Patterns and Trends\n"
        "Identify the main patterns in relationships and behaviors\n"
        "\n"
        "## 💪 Strengths and Qualities\n"
        "Highlight positive points and character strengths\n"
        "\n"
        "## 🎯 Areas for Improvement\n"
        "Constructive suggestions for personal growth\n"
        "\n"
        "## 📋 Practical Recommendations\n"
        "3-4 concrete actions to put in place\n"
        "\n"
        "## 🌟 Overview\n"
        "A caring synthesis of the psychological profile\n"
    ),
    evolution_section=(
        "\n"
        "## 📈 Evolution and Progress\n"
        "Compare with the previous analyses and note positive changes\n"
    ),
    tone=(
        "Be positive and constructive, and avoid any judgment. The goal is to help the person "
        "understand themselves better and grow. Use an empathetic and professional tone."
    ),
    tone_with_history=" Take into account the evolution since the previous analyses.",
    age_calibration=(
        "**IMPORTANT**: Calibrate your recommendations to the person's age ({age} years, "
        "age group {range}). Adapt your advice to the challenges, opportunities "
        "and priorities typical of this age group. Life expectations and contexts vary "
        "significantly with age."
    ),
)

FR = PromptLocale(
    code="fr",
    language="French",
    yes="Oui",
    no="Non",
    date_format="%d/%m/%Y",
    system=(
        "Tu es un coach de vie et psychologue expert qui analyse les données personnelles pour "
        "fournir des insights constructifs et bienveillants. "
        "Réponds toujours en français et sois empathique. "
        "Utilise un format markdown avec des sections claires."
    ),
    intro="Analyse ces données personnelles et fournis une analyse psychologique bienveillante et constructive:\n",
    profile_header="**PROFIL UTILISATEUR:**",
    age_line="Âge: {age} ans",
    age_group_line="Tranche d'âge: {label}",
    age_band_labels=(
        "Jeune adulte (18-25 ans) - Période de découverte et d'exploration",
        "Adulte établi (26-35 ans) - Période de stabilisation et de construction",
        "Adulte mature (36-45 ans) - Période d'équilibre et de réalisation",
        "Adulte expérimenté (46-55 ans) - Période de sagesse et de transmission",
        "Pré-senior (56-65 ans) - Période de transition et de bilan",
        "Senior (66+ ans) - Période de sérénité et de partage",
    ),
    relationships_header="**RELATIONS ({count} relations):**",
    relationship_line=(
        "- Relation {index}: Type: {type}, Note: {rating}, "
        "Durée: {duration}, Lieu: {location}, Sentiments: {feelings}"
    ),
    wishlist_header="**SOUHAITS ET OBJECTIFS ({count} items):**",
    wishlist_line="- {title} (Catégorie: {category}, Priorité: {priority}, Complété: {done})",
    reflection_header="**AUTO-RÉFLEXION:**",
    accepted_flaws="Défauts acceptés: {items}",
    others_think="Ce que les autres pensent: {items}",
    growth_areas="Axes de développement: {items}",
    confidence="Niveau de confiance: {level}/10",
    previous_header="**ANALYSES PRÉCÉDENTES (pour contexte et évolution):**",
    tags_line="  Tags: {tags}",
    requested_analysis=(
        "**ANALYSE DEMANDÉE:**\n"
        "\n"
        "Fournis une analyse structurée avec ces sections en markdown :\n"
        "\n"
        "## 🔍 Patterns et Tendances\n"
        "Identifie les patterns principaux dans les relations et comportements\n"
        "\n"
        "## 💪 Forces et Qualités\n"
        "Souligne les points positifs et forces de caractère\n"
        "\n"
        "## 🎯 Axes d'Amélioration\n"
        "Suggestions constructives pour le développement personnel\n"
        "\n"
        "## 📋 Recommandations Pratiques\n"
        "3-4 actions concrètes à mettre en place\n"
        "\n"
        "## 🌟 Vision d'Ensemble\n"
        "Une synthèse bienveillante du profil psychologique\n"
    ),
    evolution_section=(
        "\n"
        "## 📈 Évolution et Progrès\n"
        "Compare avec les analyses précédentes et note les évolutions positives\n"
    ),
    tone=(
        "Sois positif, constructif et évite tout jugement. L'objectif est d'aider la personne "
        "à mieux se comprendre et grandir. Utilise un ton empathique et professionnel."
    ),
    tone_with_history=" Prends en compte l'évolution par rapport aux analyses précédentes.",
    age_calibration=(
        "**IMPORTANT**: Calibre tes recommandations selon l'âge de la personne ({age} ans, "
        "tranche {range}). Adapte tes conseils aux défis, opportunités et priorités typiques "
        "de cette tranche d'âge. Les attentes et contextes de vie varient significativement "
        "selon l'âge."
    ),
)

LOCALES = {EN.code: EN, FR.code: FR}


def get_locale(code: str) -> PromptLocale:
    try:
        return LOCALES[code]
    except KeyError:
        raise ValueError(f"Unsupported insights locale: {code!r}")


def system_instruction(locale: PromptLocale) -> str:
    return locale.system


def _or_na(value) -> str:
    if value is None:
        return NOT_AVAILABLE
    text = str(value).strip()
    return text if text else NOT_AVAILABLE


def _profile_section(age: int, locale: PromptLocale) -> str:
    return (
        f"{locale.profile_header}\n"
        f"{locale.age_line.format(age=age)}\n"
        f"{locale.age_group_line.format(label=locale.band_label(age))}\n"
    )


def _relationships_section(relationships: List[RelationshipRecord], locale: PromptLocale) -> str:
    lines = [locale.relationships_header.format(count=len(relationships))]
    for index, rel in enumerate(relationships, start=1):
        lines.append(
            locale.relationship_line.format(
                index=index,
                type=rel.type,
                rating=f"{rel.rating}/10" if rel.rating is not None else NOT_AVAILABLE,
                duration=_or_na(rel.duration),
                location=_or_na(rel.location),
                feelings=_or_na(rel.feelings),
            )
        )
    return "\n".join(lines) + "\n"


def _wishlist_section(items: List[WishlistRecord], locale: PromptLocale) -> str:
    lines = [locale.wishlist_header.format(count=len(items))]
    for item in items:
        lines.append(
            locale.wishlist_line.format(
                title=item.title,
                category=_or_na(item.category),
                priority=item.priority,
                done=locale.yes if item.is_completed else locale.no,
            )
        )
    return "\n".join(lines) + "\n"


def _reflection_section(mirror: MirrorRecord, locale: PromptLocale) -> Optional[str]:
    lines = []
    if mirror.self_items:
        lines.append(locale.accepted_flaws.format(items=", ".join(mirror.self_items)))
    if mirror.others:
        lines.append(locale.others_think.format(items=", ".join(mirror.others)))
    if mirror.growth:
        lines.append(locale.growth_areas.format(items=", ".join(mirror.growth)))
    if mirror.confidence_level is not None:
        lines.append(locale.confidence.format(level=mirror.confidence_level))
    if not lines:
        return None
    return locale.reflection_header + "\n" + "\n".join(lines) + "\n"


def _recency_key(entry: PreviousAnalysis) -> datetime:
    # Naive dates are taken as UTC so client-supplied history can mix both.
    return entry.date if entry.date.tzinfo else entry.date.replace(tzinfo=timezone.utc)


def most_recent(previous: List[PreviousAnalysis]) -> List[PreviousAnalysis]:
    """The MAX_PREVIOUS_ANALYSES newest entries, newest first, whatever order they arrived in."""
    return sorted(previous, key=_recency_key, reverse=True)[:MAX_PREVIOUS_ANALYSES]


def _previous_section(previous: List[PreviousAnalysis], locale: PromptLocale) -> str:
    lines = [locale.previous_header]
    for entry in most_recent(previous):
        excerpt = entry.analysis[:PREVIOUS_ANALYSIS_EXCERPT_CHARS]
        lines.append(f"- {entry.title} ({entry.date.strftime(locale.date_format)}): {excerpt}...")
        if entry.tags:
            lines.append(locale.tags_line.format(tags=", ".join(entry.tags)))
    return "\n".join(lines) + "\n"


def _instruction_block(has_history: bool, age: Optional[int], locale: PromptLocale) -> str:
    parts = [locale.requested_analysis]
    if has_history:
        parts.append(locale.evolution_section)

    tone = locale.tone
    if has_history:
        tone += locale.tone_with_history
    parts.append("\n" + tone + "\n")

    if age is not None:
        parts.append("\n" + locale.age_calibration.format(age=age, range=age_band(age).range_label) + "\n")
    return "".join(parts)


def build_analysis_prompt(request: InsightRequest, locale: PromptLocale = EN) -> str:
    """Assemble the user prompt for one insight request."""
    sections = [locale.intro]

    if request.user_age is not None:
        sections.append(_profile_section(request.user_age, locale))

    if request.relationships:
        sections.append(_relationships_section(request.relationships, locale))

    if request.wishlist_items:
        sections.append(_wishlist_section(request.wishlist_items, locale))

    if request.mirror_data is not None:
        reflection = _reflection_section(request.mirror_data, locale)
        if reflection:
            sections.append(reflection)

    has_history = bool(request.previous_analyses)
    if has_history:
        sections.append(_previous_section(request.previous_analyses, locale))

    sections.append(_instruction_block(has_history, request.user_age, locale))
    return "\n".join(sections)
