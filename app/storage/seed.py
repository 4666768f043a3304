"""Default question catalog for the built-in domains."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.contracts import QuestionType
from app.logging import get_logger
from app.storage.models import QuestionRow
from app.storage.repo_questions import QuestionsRepo

logger = get_logger(__name__)


def _opts(*pairs: tuple[str, str, str]) -> list[dict[str, str]]:
    return [{"id": oid, "text": text, "emoji": emoji} for oid, text, emoji in pairs]


# (id, domain, type, category, expected_info_gain, text, options)
DEFAULT_QUESTIONS: list[tuple[str, str, QuestionType, str, float, str, list[dict[str, str]]]] = [
    # --- general -------------------------------------------------------
    ("cognitive_engagement", "general", QuestionType.PIVOT, "cognitive", 0.92,
     "Do you want something that challenges your mind or entertains without effort?",
     _opts(("challenge", "Challenge my mind", "🧠"), ("entertain", "Entertain without effort", "🍿"))),
    ("learning_depth", "general", QuestionType.FOLLOWUP_A, "learning", 0.85,
     "Do you want to learn something completely new or go deeper into what you know?",
     _opts(("new", "Learn something completely new", "🌟"), ("deeper", "Go deeper into what I know", "🔍"))),
    ("content_format", "general", QuestionType.FOLLOWUP_A, "format", 0.78,
     "Do you prefer video content or text-based content?",
     _opts(("video", "Video content", "📺"), ("text", "Text-based content", "📖"))),
    ("complexity_level", "general", QuestionType.FOLLOWUP_A, "complexity", 0.76,
     "Beginner-friendly or advanced material?",
     _opts(("beginner", "Beginner-friendly", "🌱"), ("advanced", "Advanced/Expert level", "🚀"))),
    ("practical_theoretical", "general", QuestionType.FOLLOWUP_A, "learning", 0.73,
     "A practical how-to or theoretical concepts?",
     _opts(("practical", "Practical how-to", "🔧"), ("theoretical", "Theoretical concepts", "📐"))),
    ("topic_preference", "general", QuestionType.FOLLOWUP_A, "topic", 0.71,
     "Technology and science, or arts and humanities?",
     _opts(("tech", "Technology/Science", "💻"), ("arts", "Arts/Humanities", "🎨"))),
    ("engagement_type", "general", QuestionType.FOLLOWUP_B, "engagement", 0.83,
     "Do you want something interactive and engaging or passive and relaxing?",
     _opts(("interactive", "Interactive and engaging", "🎮"), ("passive", "Passive and relaxing", "🛋️"))),
    ("novelty_preference", "general", QuestionType.FOLLOWUP_B, "novelty", 0.79,
     "Do you want something familiar and comforting or a pleasant surprise?",
     _opts(("familiar", "Familiar and comforting", "🏠"), ("surprise", "A pleasant surprise", "🎁"))),
    ("social_context", "general", QuestionType.FOLLOWUP_B, "social", 0.74,
     "Is this just for you or something to share with others?",
     _opts(("personal", "Just for me", "👤"), ("social", "To share with others", "👥"))),
    ("mood_preference", "general", QuestionType.FOLLOWUP_B, "mood", 0.72,
     "Something uplifting or something thought-provoking?",
     _opts(("uplifting", "Something uplifting", "☀️"), ("thoughtful", "Something thought-provoking", "🤔"))),
    ("visual_preference", "general", QuestionType.FOLLOWUP_B, "visual", 0.66,
     "Highly visual, or focused on ideas?",
     _opts(("visual", "Highly visual", "👁️"), ("ideas", "Focus on ideas", "💭"))),
    ("interactivity_level", "general", QuestionType.FOLLOWUP_B, "engagement", 0.64,
     "Do you want to actively participate or just observe?",
     _opts(("participate", "Actively participate", "🙋"), ("observe", "Just observe", "👀"))),
    ("time_commitment", "general", QuestionType.CONTEXTUAL, "time", 0.81,
     "Are you looking for something quick (under 20 minutes) or something substantial?",
     _opts(("quick", "Something quick (under 20 min)", "⚡"), ("substantial", "Something substantial", "🏛️"))),
    ("content_length", "general", QuestionType.CONTEXTUAL, "length", 0.62,
     "Bite-sized content or a longer immersive experience?",
     _opts(("bite", "Bite-sized content", "🍬"), ("immersive", "Longer immersive experience", "🌊"))),
    ("creator_preference", "general", QuestionType.CONTEXTUAL, "creator", 0.58,
     "Established experts or emerging voices?",
     _opts(("established", "Established experts", "🏆"), ("emerging", "Emerging voices", "🌟"))),
    # --- movies --------------------------------------------------------
    ("movie_mood", "movies", QuestionType.PIVOT, "mood", 0.90,
     "Do you want a movie that challenges you or one that helps you unwind?",
     _opts(("challenge", "Challenge me", "😰"), ("unwind", "Help me unwind", "😊"))),
    ("movie_genre_intense", "movies", QuestionType.FOLLOWUP_A, "genre", 0.86,
     "Heart-pounding thriller or mind-bending sci-fi?",
     _opts(("thriller", "Thriller", "💀"), ("scifi", "Sci-fi", "🚀"))),
    ("movie_pace", "movies", QuestionType.FOLLOWUP_A, "pace", 0.79,
     "Slow burn that builds tension or non-stop action?",
     _opts(("slow", "Slow burn", "🕯️"), ("action", "Non-stop action", "💥"))),
    ("movie_stakes", "movies", QuestionType.FOLLOWUP_A, "stakes", 0.74,
     "Personal intimate stakes or world-ending consequences?",
     _opts(("personal", "Personal stakes", "💔"), ("epic", "World-ending", "🌍"))),
    ("movie_violence", "movies", QuestionType.FOLLOWUP_A, "violence", 0.70,
     "Gritty and realistic or stylized and fantastical?",
     _opts(("gritty", "Gritty realistic", "🩸"), ("stylized", "Stylized fantasy", "✨"))),
    ("movie_ending", "movies", QuestionType.FOLLOWUP_A, "ending", 0.67,
     "Need a satisfying conclusion or okay with ambiguity?",
     _opts(("satisfying", "Satisfying conclusion", "🎯"), ("ambiguous", "Ambiguity okay", "❓"))),
    ("movie_genre_light", "movies", QuestionType.FOLLOWUP_B, "genre", 0.85,
     "Comedy that makes you laugh or drama that warms your heart?",
     _opts(("comedy", "Comedy", "😂"), ("drama", "Drama", "🎭"))),
    ("movie_era_modern", "movies", QuestionType.FOLLOWUP_B, "era", 0.78,
     "Something from the last 5 years or a timeless classic?",
     _opts(("recent", "Recent (last 5 years)", "🆕"), ("classic", "Timeless classic", "🏛️"))),
    ("movie_reality_light", "movies", QuestionType.FOLLOWUP_B, "reality", 0.75,
     "Grounded in reality or pure escapist fantasy?",
     _opts(("realistic", "Grounded reality", "🏙️"), ("fantasy", "Escapist fantasy", "🦄"))),
    ("movie_commitment_light", "movies", QuestionType.FOLLOWUP_B, "time", 0.72,
     "Quick watch (under 2 hours) or ready for an epic journey?",
     _opts(("quick", "Quick (under 2 hours)", "⏱️"), ("epic", "Epic journey", "🗺️"))),
    ("movie_solo_social", "movies", QuestionType.FOLLOWUP_B, "social", 0.68,
     "Watching alone or with others?",
     _opts(("solo", "Watching alone", "👤"), ("social", "With others", "👥"))),
    ("movie_franchise", "movies", QuestionType.CONTEXTUAL, "franchise", 0.65,
     "Stand-alone story or part of a larger universe?",
     _opts(("standalone", "Stand-alone", "🎬"), ("franchise", "Part of universe", "🌌"))),
    ("movie_cast", "movies", QuestionType.CONTEXTUAL, "cast", 0.62,
     "Star-studded blockbuster or hidden gem with unknowns?",
     _opts(("stars", "Star-studded", "⭐"), ("indie", "Hidden gem", "💎"))),
    ("movie_subtitles", "movies", QuestionType.CONTEXTUAL, "language", 0.60,
     "English only or open to foreign films with subtitles?",
     _opts(("english", "English only", "🇬🇧"), ("foreign", "Foreign films okay", "🌍"))),
    ("movie_rating", "movies", QuestionType.CONTEXTUAL, "rating", 0.58,
     "Family-friendly or mature content okay?",
     _opts(("family", "Family-friendly", "👪"), ("mature", "Mature content", "🔞"))),
]


async def seed_catalog(session: AsyncSession) -> int:
    """Insert default questions that are not in the catalog yet.

    Existing rows are left alone so tuned ``expected_info_gain`` values
    survive restarts.

    Returns:
        Number of questions inserted
    """
    result = await session.execute(select(QuestionRow.id))
    existing = set(result.scalars().all())

    repo = QuestionsRepo(session)
    inserted = 0
    for question_id, domain, qtype, category, gain, text, options in DEFAULT_QUESTIONS:
        if question_id in existing:
            continue
        await repo.upsert_question(
            question_id=question_id,
            domain=domain,
            text=text,
            question_type=qtype,
            category=category,
            expected_info_gain=gain,
            options=options,
        )
        inserted += 1

    if inserted:
        logger.info(f"Seeded {inserted} catalog questions")
    return inserted
