"""Prompt construction for tagline generation.

Tone instructions are written once in English; the target language is named
in the prompt so the model writes natively in it. Suggested action verbs are
given per language.
"""
from typing import Dict, List

from models import Tone

PHRASE_COUNT = 10
MIN_WORDS = 4
MAX_WORDS = 8

DEFAULT_LANGUAGE = "fr"

LANGUAGE_NAMES: Dict[str, str] = {
    "fr": "French",
    "en": "English",
    "es": "Spanish",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
}

TONE_LABELS: Dict[Tone, str] = {
    Tone.HUMOROUS: "Humorous",
    Tone.INSPIRING: "Inspiring",
    Tone.DIRECT: "Direct",
    Tone.MYSTERIOUS: "Mysterious",
    Tone.LUXURIOUS: "Luxurious",
    Tone.TECH: "Tech",
}

TONE_INSTRUCTIONS: Dict[Tone, str] = {
    Tone.HUMOROUS: (
        "- Use irony, wordplay and local pop culture references\n"
        "- Surprise the reader with unexpected turns\n"
        "- Play with contrasts and paradoxes\n"
        "- Prefer wit over heavy-handed jokes\n"
        '- Example structures: "X that doesn\'t Y you", "Finally an X that Z"'
    ),
    Tone.INSPIRING: (
        "- Use powerful action verbs\n"
        "- Evoke success, going further, accomplishment\n"
        "- Speak directly to the reader's aspirations, in the second person\n"
        '- Example structures: "Transform your X into Y", "Unleash your X"'
    ),
    Tone.DIRECT: (
        "- Ultra-short phrases (4-6 words)\n"
        "- Imperatives or categorical statements\n"
        "- Remove every superfluous word\n"
        "- Strong punctuation (periods, exclamation marks)\n"
        '- Example structures: "X. Period.", "No more Y. X.", "X that works."'
    ),
    Tone.MYSTERIOUS: (
        "- Ask intriguing questions or make enigmatic statements\n"
        "- Evoke secrets, hidden methods, revelations\n"
        "- Create curiosity without revealing everything\n"
        '- Example structures: "The secret X hides", "What Y won\'t tell you"'
    ),
    Tone.LUXURIOUS: (
        "- Refined vocabulary (excellence, craftsmanship, exclusivity)\n"
        "- Evoke rarity, superior quality, a privileged circle\n"
        '- Terms such as "premium", "signature", "collection"\n'
        '- Example structures: "Excellence in X", "Signature X", "For connoisseurs of Y"'
    ),
    Tone.TECH: (
        "- Precise, modern technical vocabulary\n"
        "- Stress performance, automation, efficiency, innovation\n"
        "- Concrete measurable benefits over vague promises\n"
        '- Example structures: "X, optimized.", "Automate your Y", "Z, 10x faster"'
    ),
}

TONE_VERBS: Dict[Tone, Dict[str, List[str]]] = {
    Tone.HUMOROUS: {
        "fr": ["Découvre", "Regarde", "Stoppe", "Devine", "Ris"],
        "en": ["Discover", "Look", "Stop", "Guess", "Laugh"],
        "es": ["Descubre", "Mira", "Para", "Adivina", "Ríe"],
        "de": ["Entdecke", "Schau", "Stoppe", "Rate", "Lache"],
        "it": ["Scopri", "Guarda", "Ferma", "Indovina", "Ridi"],
        "pt": ["Descobre", "Olha", "Para", "Adivinha", "Ri"],
    },
    Tone.INSPIRING: {
        "fr": ["Transforme", "Libère", "Crée", "Révolutionne", "Inspire"],
        "en": ["Transform", "Free", "Create", "Revolutionize", "Inspire"],
        "es": ["Transforma", "Libera", "Crea", "Revoluciona", "Inspira"],
        "de": ["Verwandle", "Befreie", "Erschaffe", "Revolutioniere", "Inspiriere"],
        "it": ["Trasforma", "Libera", "Crea", "Rivoluziona", "Ispira"],
        "pt": ["Transforma", "Liberta", "Cria", "Revoluciona", "Inspira"],
    },
    Tone.DIRECT: {
        "fr": ["Commence", "Obtiens", "Démarre", "Lance", "Agis"],
        "en": ["Start", "Get", "Begin", "Launch", "Act"],
        "es": ["Comienza", "Obtén", "Empieza", "Lanza", "Actúa"],
        "de": ["Starte", "Erhalte", "Beginne", "Handle"],
        "it": ["Inizia", "Ottieni", "Comincia", "Lancia", "Agisci"],
        "pt": ["Começa", "Obtém", "Inicia", "Lança", "Age"],
    },
    Tone.MYSTERIOUS: {
        "fr": ["Découvre", "Explore", "Dévoile", "Révèle", "Imagine"],
        "en": ["Discover", "Explore", "Unveil", "Reveal", "Imagine"],
        "es": ["Descubre", "Explora", "Desvela", "Revela", "Imagina"],
        "de": ["Entdecke", "Erkunde", "Enthülle", "Offenbare"],
        "it": ["Scopri", "Esplora", "Svela", "Rivela", "Immagina"],
        "pt": ["Descobre", "Explora", "Desvenda", "Revela", "Imagina"],
    },
    Tone.LUXURIOUS: {
        "fr": ["Savourez", "Découvrez", "Vivez", "Expérimentez", "Appréciez"],
        "en": ["Savor", "Discover", "Experience", "Indulge", "Appreciate"],
        "es": ["Saborea", "Descubre", "Vive", "Experimenta", "Aprecia"],
        "de": ["Genieße", "Entdecke", "Erlebe", "Schwelge", "Schätze"],
        "it": ["Assapora", "Scopri", "Vivi", "Sperimenta", "Apprezza"],
        "pt": ["Saboreia", "Descobre", "Vive", "Experimenta", "Aprecia"],
    },
    Tone.TECH: {
        "fr": ["Optimise", "Configure", "Automatise", "Synchronise", "Connecte"],
        "en": ["Optimize", "Configure", "Automate", "Sync", "Connect"],
        "es": ["Optimiza", "Configura", "Automatiza", "Sincroniza", "Conecta"],
        "de": ["Optimiere", "Konfiguriere", "Automatisiere", "Synchronisiere", "Verbinde"],
        "it": ["Ottimizza", "Configura", "Automatizza", "Sincronizza", "Connetti"],
        "pt": ["Otimiza", "Configura", "Automatiza", "Sincroniza", "Conecta"],
    },
}

SYSTEM_PROMPT = (
    "You are a senior multilingual advertising copywriter, expert in consumer "
    "psychology and local cultural nuance. You write hooks that convert immediately."
)


def resolve_language(language: str) -> str:
    """Map 'en-US' / 'pt_BR' style codes to a supported base language, else the default."""
    base = (language or "").strip().lower().replace("_", "-").split("-")[0]
    return base if base in LANGUAGE_NAMES else DEFAULT_LANGUAGE


def get_tone_verbs(tone: Tone, language: str) -> List[str]:
    verbs = TONE_VERBS[tone]
    return verbs.get(resolve_language(language), verbs[DEFAULT_LANGUAGE])


def build_prompt(concept: str, tone: Tone, language: str) -> str:
    lang = resolve_language(language)
    language_name = LANGUAGE_NAMES[lang]
    verbs = ", ".join(get_tone_verbs(tone, lang))

    return f"""OBJECTIVE: Write exactly {PHRASE_COUNT} unique marketing slogans for: "{concept}"

OUTPUT LANGUAGE: {language_name}. Write natively in {language_name}, never translate from another language.

TONE ({TONE_LABELS[tone]}):
{TONE_INSTRUCTIONS[tone]}
- Suggested action verbs: {verbs}

STRICT CONSTRAINTS:
- Between {MIN_WORDS} and {MAX_WORDS} words per slogan
- Idiomatic, natural phrasing for a native {language_name} speaker
- No clichés or generic marketing filler
- Every slogan must make the reader want to act
- Every slogan must be different from the others

TECHNIQUES:
- Concrete benefit over feature
- Rhythm and sound: alliteration, short beats
- Emotional trigger suited to the tone

AVOID:
- Quotation marks, emojis, hashtags
- Mentioning competitors
- Superlatives with nothing behind them

OUTPUT FORMAT:
- One slogan per line
- No numbering, no bullets, no titles
- No introduction, explanation or commentary"""


def build_complement_prompt(
    concept: str,
    tone: Tone,
    language: str,
    existing: List[str],
    missing: int,
) -> str:
    lang = resolve_language(language)
    language_name = LANGUAGE_NAMES[lang]
    already = "\n".join(existing)

    return f"""Write {missing} more marketing slogans for: "{concept}"

OUTPUT LANGUAGE: {language_name}
TONE ({TONE_LABELS[tone]}):
{TONE_INSTRUCTIONS[tone]}

Between {MIN_WORDS} and {MAX_WORDS} words each. Do NOT repeat or paraphrase these:
{already}

One slogan per line, no numbering, no commentary."""
