# tutor/utils/catalog.py
# Languages and conversation topics offered to students.
from typing import Dict, List, Tuple

LANGUAGES: List[Dict[str, str]] = [
    {"code": "it", "name": "Italian", "native_name": "Italiano", "flag": "🇮🇹"},
    {"code": "es", "name": "Spanish", "native_name": "Español", "flag": "🇪🇸"},
    {"code": "pt", "name": "Portuguese", "native_name": "Português", "flag": "🇧🇷"},
]

TOPICS: List[Dict[str, str]] = [
    {"id": "general", "name": "General Conversation", "icon": "💬", "description": "Everyday small talk, greetings, and casual chat", "category": "Everyday Life"},
    {"id": "daily-recap", "name": "Daily Recap", "icon": "📅", "description": "Recap your day, share stories and experiences", "category": "Everyday Life"},
    {"id": "future-plans", "name": "Future Plans", "icon": "🗓️", "description": "Discuss upcoming events, dreams, and goals", "category": "Everyday Life"},
    {"id": "home", "name": "Home & Living", "icon": "🏠", "description": "Household topics, décor, and neighborhoods", "category": "Everyday Life"},
    {"id": "family", "name": "Family & Relationships", "icon": "👨‍👩‍👧", "description": "Talk about family, friends, and relationships", "category": "Social"},
    {"id": "food-dining", "name": "Food & Dining", "icon": "🍽️", "description": "Restaurants, ordering food, recipes, and cuisine", "category": "Social"},
    {"id": "shopping", "name": "Shopping", "icon": "🛍️", "description": "Stores, markets, prices, and fashion", "category": "Social"},
    {"id": "travel", "name": "Travel & Tourism", "icon": "✈️", "description": "Directions, hotels, airports, and sightseeing", "category": "Travel & Leisure"},
    {"id": "sports", "name": "Sports & Fitness", "icon": "⚽", "description": "Sports, teams, gym routines, and exercise", "category": "Travel & Leisure"},
    {"id": "entertainment", "name": "Entertainment", "icon": "🎬", "description": "TV, movies, music, gaming, and pop culture", "category": "Travel & Leisure"},
    {"id": "culture", "name": "Culture & Arts", "icon": "🎭", "description": "Art, music, literature, festivals, and traditions", "category": "Travel & Leisure"},
    {"id": "environment", "name": "Environment & Nature", "icon": "🌿", "description": "Weather, ecology, and outdoor activities", "category": "Travel & Leisure"},
    {"id": "health", "name": "Health & Wellness", "icon": "🏥", "description": "Doctor visits, fitness, symptoms, and well-being", "category": "Health & Learning"},
    {"id": "education", "name": "Education & Learning", "icon": "📚", "description": "School, courses, studying, and academic life", "category": "Health & Learning"},
    {"id": "work", "name": "Work & Career", "icon": "💼", "description": "Job interviews, workplace, and career development", "category": "Professional"},
    {"id": "technology", "name": "Technology", "icon": "💻", "description": "Tech talk, software, devices, and digital life", "category": "Professional"},
    {"id": "cloud", "name": "Cloud Computing", "icon": "☁️", "description": "Cloud services, DevOps, Kubernetes, and infrastructure", "category": "Professional"},
    {"id": "marketing", "name": "Marketing & Business", "icon": "📊", "description": "Campaigns, branding, sales, and business strategy", "category": "Professional"},
    {"id": "finance", "name": "Finance & Banking", "icon": "💰", "description": "Money, investments, banking, and economics", "category": "Professional"},
    {"id": "news", "name": "News & Current Events", "icon": "📰", "description": "Discussing news, politics, and world affairs", "category": "Professional"},
]

_LANGUAGES_BY_CODE = {lang["code"]: lang for lang in LANGUAGES}
_TOPICS_BY_ID = {topic["id"]: topic for topic in TOPICS}


def is_valid_language(code: str) -> bool:
    return code in _LANGUAGES_BY_CODE


def is_valid_topic(topic_id: str) -> bool:
    return topic_id in _TOPICS_BY_ID


def language_name(code: str) -> str:
    """English name of a language code; unknown codes fall back to Italian."""
    return _LANGUAGES_BY_CODE.get(code, _LANGUAGES_BY_CODE["it"])["name"]


def topic_details(topic_id: str) -> Tuple[str, str]:
    topic = _TOPICS_BY_ID.get(topic_id)
    if topic is None:
        return "General Conversation", "Everyday casual conversation"
    return topic["name"], topic["description"]
