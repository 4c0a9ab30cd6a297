"""Profile signal patterns for resume and job request text.

Patterns used to pull years of experience, education level, the natural
language of the text and a seniority label out of free text. English and
Spanish variants are both covered.
"""

# Years of experience, most specific first. Group 1 is the number.
YEARS_OF_EXPERIENCE_PATTERNS = [
    r"(\d{1,2})\+?\s*(?:years?|años?)\s*(?:of\s*|de\s*)?(?:experience|experiencia)",
    r"(?:experience|experiencia)\s*(?:of\s*|de\s*)?(\d{1,2})\+?\s*(?:years?|años?)",
    r"(\d{1,2})\+?\s*(?:years?|años?)\s*(?:in|en|with|con)\b",
    r"(\d{1,2})\+?\s*(?:years?|años?)",
]

# Education level -> keywords, highest level first
EDUCATION_PATTERNS = {
    "phd": ["phd", "ph.d", "doctorate", "doctorado"],
    "master": ["master", "msc", "m.sc", "mba", "maestría", "maestria", "máster"],
    "bachelor": [
        "bachelor",
        "bsc",
        "b.sc",
        "licenciatura",
        "grado",
        "ingeniería",
        "ingenieria",
    ],
    "associate": ["associate degree", "técnico superior", "tecnico superior"],
    "certification": ["certification", "certificate", "certificación", "certificado"],
    "diploma": ["diploma"],
    "high school": ["high school", "bachillerato", "secundaria"],
}

LANGUAGE_INDICATORS = {
    "english": [
        "experience",
        "skills",
        "developer",
        "engineer",
        "years",
        "required",
        "looking",
        "need",
        "hiring",
    ],
    "spanish": [
        "experiencia",
        "habilidades",
        "desarrollador",
        "ingeniero",
        "años",
        "requerido",
        "buscamos",
        "necesitamos",
        "contratando",
    ],
}

# Seniority label -> indicators, checked in order
SENIORITY_PATTERNS = {
    "Senior": [
        "senior",
        "sr",
        "lead",
        "principal",
        "staff",
        "architect",
        "expert",
        "manager",
        "director",
        "head of",
    ],
    "Mid": ["mid", "mid-level", "middle", "intermediate", "semi senior", "semi-senior"],
    "Junior": ["junior", "jr", "entry", "entry-level", "intern", "trainee", "apprentice"],
}

POSITION_KEYWORDS = ["developer", "engineer", "manager", "analyst", "architect", "designer", "scientist"]

INSTITUTION_KEYWORDS = ["university", "universidad", "college", "institute", "instituto", "school", "escuela"]
