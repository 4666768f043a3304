"""Deterministic fallback recommendations.

Used whenever the generation service is unavailable or returns something
unusable. The first one or two answers select a curated pool; any
shortfall is padded from a per-domain serendipity pool, so every call
returns exactly ``count`` items.
"""

from dataclasses import replace

from app.core.contracts import RecommendationItem, SessionState

MIN_COUNT = 1
MAX_COUNT = 5


def _item(
    title: str,
    description: str,
    type: str,
    duration: str,
    match_reason: str,
    source: str,
    year: int | None = None,
    url: str | None = None,
) -> RecommendationItem:
    return RecommendationItem(
        title=title,
        description=description,
        type=type,
        duration=duration,
        match_reason=match_reason,
        source=source,
        year=year,
        search_terms=title if year is None else f"{title} {year}",
        url=url,
    )


def _film(title: str, year: int, minutes: int, description: str, match_reason: str) -> RecommendationItem:
    return _item(title, description, "movie", f"{minutes} minutes", match_reason, "Film", year)


_GENERAL_POOLS: dict[str, list[RecommendationItem]] = {
    "challenge:video": [
        _item("The Art of Code", "Dylan Beattie's talk on programming as a creative art form.",
              "video", "60 minutes", "High cognitive challenge in video form", "YouTube",
              url="https://www.youtube.com/results?search_query=dylan+beattie+art+of+code"),
        _item("3Blue1Brown: Essence of Linear Algebra",
              "Visual, intuition-first explanations of the ideas behind linear algebra.",
              "video", "15 minutes per episode", "Visual depth on a demanding topic", "YouTube"),
    ],
    "challenge:text": [
        _item("A Mathematical Theory of Communication",
              "Claude Shannon's foundational paper on information theory.",
              "article", "2-3 hours", "Deep intellectual content in text form",
              "Bell System Technical Journal"),
        _item("Paul Graham Essays", "Sharp, self-contained essays on startups, programming and thinking.",
              "article", "15-30 minutes each", "Challenging ideas in long-form text", "paulgraham.com",
              url="http://www.paulgraham.com/articles.html"),
    ],
    "challenge:new": [
        _item("Crash Course", "Fast, well-produced introductions to dozens of new subjects.",
              "video", "10-15 minutes", "A brisk way into an unfamiliar field", "YouTube"),
    ],
    "challenge:deeper": [
        _item("MIT OpenCourseWare", "Full university lectures and notes for going deep on a subject.",
              "course", "Variable", "Depth on familiar topics", "MIT",
              url="https://ocw.mit.edu"),
    ],
    "challenge": [
        _item("The Art of Code", "Dylan Beattie's talk on programming as a creative art form.",
              "video", "60 minutes", "High cognitive challenge", "YouTube",
              url="https://www.youtube.com/results?search_query=dylan+beattie+art+of+code"),
        _item("A Mathematical Theory of Communication",
              "Claude Shannon's foundational paper on information theory.",
              "article", "2-3 hours", "Foundational, demanding reading",
              "Bell System Technical Journal"),
        _item("Veritasium", "Science videos that question common intuitions.",
              "video", "15-25 minutes", "Thought-provoking without being dry", "YouTube"),
    ],
    "entertain:quick": [
        _item("TED-Ed Riddles", "Short animated riddles that gently exercise your brain.",
              "video", "5-10 minutes", "Quick and light", "YouTube",
              url="https://www.youtube.com/results?search_query=ted-ed+riddles"),
    ],
    "entertain:interactive": [
        _item("GeoGuessr", "Guess where in the world you have been dropped.",
              "interactive", "5-20 minutes", "Interactive and playful", "geoguessr.com"),
    ],
    "entertain": [
        _item("Kurzgesagt: In a Nutshell",
              "Beautifully animated videos explaining big topics simply.",
              "video", "10-15 minutes", "Entertaining without heavy effort", "YouTube",
              url="https://www.youtube.com/c/inanutshell"),
        _item("TED-Ed Riddles", "Short animated riddles that gently exercise your brain.",
              "video", "5-10 minutes", "Light mental engagement", "YouTube",
              url="https://www.youtube.com/results?search_query=ted-ed+riddles"),
        _item("99% Invisible", "A podcast about the unnoticed design of everyday things.",
              "podcast", "30-45 minutes", "Relaxed listening with a spark of curiosity", "Podcast"),
    ],
}

_GENERAL_SERENDIPITY = [
    _item("Exploratorium Online", "Interactive science exhibits and experiments to try at home.",
          "interactive", "Variable", "Serendipitous hands-on discovery", "Exploratorium",
          url="https://www.exploratorium.edu/explore"),
    _item("Wikipedia Random Article", "Discover something completely unexpected.",
          "article", "5-30 minutes", "Serendipitous discovery", "Wikipedia",
          url="https://en.wikipedia.org/wiki/Special:Random"),
    _item("Radiolab", "Curious stories at the edges of science and philosophy.",
          "podcast", "30-60 minutes", "A curiosity-driven detour", "Podcast"),
    _item("Atlas Obscura", "Strange and wonderful places from around the world.",
          "article", "5-10 minutes", "Something you did not know to look for", "atlasobscura.com"),
    _item("The Pudding", "Visual essays that explain ideas through data.",
          "article", "10-20 minutes", "Playful data storytelling", "pudding.cool"),
    _item("NASA Astronomy Picture of the Day", "A new image of the universe every day.",
          "image", "2 minutes", "A moment of wonder", "NASA",
          url="https://apod.nasa.gov/apod/"),
]

_MOVIE_POOLS: dict[str, list[RecommendationItem]] = {
    "challenge:thriller": [
        _film("Prisoners", 2013, 153, "A father takes the law into his own hands after his daughter vanishes.",
              "Tense, morally knotty thriller"),
        _film("Memento", 2000, 113, "A man with no short-term memory hunts his wife's killer.",
              "A thriller you have to piece together"),
        _film("Gone Girl", 2014, 149, "A missing-wife case turns into a media circus with a twist.",
              "Twisty psychological thriller"),
    ],
    "challenge:scifi": [
        _film("Arrival", 2016, 116, "A linguist races to understand alien visitors.",
              "Cerebral, emotional science fiction"),
        _film("Primer", 2004, 77, "Two engineers accidentally build a time machine.",
              "Dense sci-fi that rewards attention"),
        _film("Ex Machina", 2014, 108, "A programmer evaluates a humanoid AI in an isolated estate.",
              "Intimate sci-fi with hard questions"),
    ],
    "challenge": [
        _film("Parasite", 2019, 132, "A poor family infiltrates a wealthy household.",
              "Genre-bending and sharp"),
        _film("Incendies", 2010, 131, "Twins uncover their mother's past in the Middle East.",
              "Demanding, powerful drama"),
        _film("Zodiac", 2007, 157, "Journalists and detectives obsess over an unsolved case.",
              "A slow, absorbing puzzle"),
    ],
    "unwind:comedy": [
        _film("Paddington 2", 2017, 103, "Paddington is framed for theft and wins over a prison.",
              "Pure warmth and laughs"),
        _film("The Grand Budapest Hotel", 2014, 99, "A concierge and his lobby boy get caught up in a caper.",
              "Whimsical, easy comedy"),
        _film("Game Night", 2018, 100, "A couple's game night turns into a real mystery.",
              "Breezy crowd-pleaser"),
    ],
    "unwind:drama": [
        _film("Little Miss Sunshine", 2006, 101, "A family road trip to a children's pageant.",
              "Heartfelt and funny"),
        _film("Chef", 2014, 114, "A chef starts over with a food truck and his son.",
              "Feel-good drama"),
        _film("The Intouchables", 2011, 112, "An unlikely friendship between a carer and his employer.",
              "Warm, uplifting story"),
    ],
    "unwind": [
        _film("School of Rock", 2003, 109, "A failed rocker poses as a substitute teacher.",
              "Effortless fun"),
        _film("The Princess Bride", 1987, 98, "A storybook adventure of true love and sword fights.",
              "A comfort classic"),
        _film("Knives Out", 2019, 130, "A detective untangles a wealthy family's lies.",
              "Light, clever whodunit"),
    ],
}

_MOVIE_SERENDIPITY = [
    _film("Spirited Away", 2001, 125, "A girl is trapped in a spirit world bathhouse.",
          "A serendipitous classic"),
    _film("Amélie", 2001, 122, "A shy Parisian quietly changes the lives around her.",
          "Charming and unexpected"),
    _film("Hunt for the Wilderpeople", 2016, 101, "A boy and his foster uncle go on the run in the bush.",
          "A hidden gem"),
    _film("Whiplash", 2014, 106, "A drummer and his brutal instructor push each other.",
          "Electric and surprising"),
    _film("Mad Max: Fury Road", 2015, 120, "A desert chase that barely stops for breath.",
          "Something different tonight"),
    _film("Everything Everywhere All at Once", 2022, 139,
          "A laundromat owner is pulled across the multiverse.",
          "A wild card pick"),
]

_POOLS = {"general": _GENERAL_POOLS, "movies": _MOVIE_POOLS}
_SERENDIPITY = {"general": _GENERAL_SERENDIPITY, "movies": _MOVIE_SERENDIPITY}


def bucket_for(session: SessionState) -> tuple[str | None, str | None]:
    """Coarse preference bucket from the first one or two answers."""
    primary = session.choices[0].choice if session.choices else None
    secondary = session.choices[1].choice if len(session.choices) > 1 else None
    return primary, secondary


def fallback_recommendations(session: SessionState, count: int) -> list[RecommendationItem]:
    """Return exactly ``count`` curated items for a session.

    Total for any session and any count in [1, 5]: unknown domains and
    unmapped buckets fall through to the serendipity pool.
    """
    count = min(MAX_COUNT, max(MIN_COUNT, count))
    pools = _POOLS.get(session.domain, _GENERAL_POOLS)
    serendipity = _SERENDIPITY.get(session.domain, _GENERAL_SERENDIPITY)

    primary, secondary = bucket_for(session)
    candidates: list[RecommendationItem] = []
    if primary and secondary:
        candidates += pools.get(f"{primary}:{secondary}", [])
    if primary:
        candidates += pools.get(primary, [])
    candidates += serendipity
    # Floor for a domain whose serendipity pool is too small
    candidates += _GENERAL_SERENDIPITY + _MOVIE_SERENDIPITY

    picked: list[RecommendationItem] = []
    seen: set[str] = set()
    for item in candidates:
        key = item.title.casefold()
        if key in seen:
            continue
        seen.add(key)
        picked.append(replace(item))
        if len(picked) == count:
            break
    return picked


FALLBACK_REASONING = (
    "Curated suggestions chosen from your first answers while personalised "
    "recommendations are unavailable."
)
