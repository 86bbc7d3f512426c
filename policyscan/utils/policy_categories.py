"""
Fixed policy taxonomy.

Category keys are "<GROUP>_<SUB>", e.g. CONTENT_SAFETY_VIOLENCE. Every
enhanced result carries exactly these keys in `policy_categories`.
"""

from typing import Dict, List

POLICY_TAXONOMY: Dict[str, Dict[str, str]] = {
    "CONTENT_SAFETY": {
        "VIOLENCE": "Violence & Graphic Content",
        "DANGEROUS_ACTS": "Dangerous Acts & Challenges",
        "HARMFUL_CONTENT": "Harmful or Dangerous Content",
        "CHILD_SAFETY": "Child Safety",
    },
    "COMMUNITY_STANDARDS": {
        "HARASSMENT": "Harassment & Cyberbullying",
        "HATE_SPEECH": "Hate Speech",
        "SPAM": "Spam, Deceptive Practices & Scams",
        "MISINFORMATION": "Misinformation",
    },
    "ADVERTISER_FRIENDLY": {
        "SEXUAL_CONTENT": "Sexual Content",
        "PROFANITY": "Profanity & Inappropriate Language",
        "CONTROVERSIAL": "Controversial or Sensitive Topics",
        "BRAND_SAFETY": "Brand Safety Issues",
    },
    "LEGAL_COMPLIANCE": {
        "COPYRIGHT": "Copyright & Intellectual Property",
        "PRIVACY": "Privacy & Personal Information",
        "TRADEMARK": "Trademark Violations",
        "LEGAL_REQUESTS": "Legal Requests & Compliance",
    },
    "MONETIZATION": {
        "AD_POLICIES": "Ad-Friendly Content Guidelines",
        "SPONSORED_CONTENT": "Sponsored Content Disclosure",
        "MONETIZATION_ELIGIBILITY": "Monetization Eligibility",
    },
}


def _build_display_names() -> Dict[str, str]:
    names = {}
    for group, subs in POLICY_TAXONOMY.items():
        for sub, display_name in subs.items():
            names[f"{group}_{sub}"] = display_name
    return names


CATEGORY_DISPLAY_NAMES: Dict[str, str] = _build_display_names()
POLICY_CATEGORY_KEYS: List[str] = list(CATEGORY_DISPLAY_NAMES)


def is_policy_category(key: str) -> bool:
    return key in CATEGORY_DISPLAY_NAMES


def get_display_name(key: str) -> str:
    """Human-readable name, or the key with spaces for unknown keys."""
    return CATEGORY_DISPLAY_NAMES.get(key, key.replace("_", " "))
