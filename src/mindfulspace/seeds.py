"""Default records used to bootstrap empty collections."""

from typing import Any, Dict, List

EXERCISES: List[Dict[str, Any]] = [
    {
        "id": "ex_1",
        "category": "anxiety",
        "title_en": "Box Breathing",
        "title_es": "Respiración en Caja",
        "description_en": "A simple breathing technique to regain calm and control.",
        "description_es": "Una técnica de respiración simple para recuperar la calma y el control.",
        "content_en": (
            "1. Inhale for 4 seconds.\n2. Hold for 4 seconds.\n"
            "3. Exhale for 4 seconds.\n4. Hold for 4 seconds.\nRepeat 4 times."
        ),
        "content_es": (
            "1. Inhala por 4 segundos.\n2. Retén por 4 segundos.\n"
            "3. Exhala por 4 segundos.\n4. Retén por 4 segundos.\nRepite 4 veces."
        ),
        "duration": 5,
    },
    {
        "id": "ex_2",
        "category": "stress",
        "title_en": "Progressive Muscle Relaxation",
        "title_es": "Relajación Muscular Progresiva",
        "description_en": "Release tension by tensing and relaxing muscle groups.",
        "description_es": "Libera tensión tensando y relajando grupos musculares.",
        "content_en": (
            "Start with your toes. Tense them for 5 seconds, then release. "
            "Move up to your calves, thighs, and so on until you reach your head."
        ),
        "content_es": (
            "Comienza con tus dedos de los pies. Ténsalos 5 segundos, luego suelta. "
            "Sube a pantorrillas, muslos, etc. hasta llegar a la cabeza."
        ),
        "duration": 10,
    },
    {
        "id": "ex_3",
        "category": "self_esteem",
        "title_en": "Positive Affirmations",
        "title_es": "Afirmaciones Positivas",
        "description_en": "Build confidence by repeating positive statements.",
        "description_es": "Construye confianza repitiendo frases positivas.",
        "content_en": 'Repeat aloud: "I am worthy. I am capable. I am enough."',
        "content_es": 'Repite en voz alta: "Soy valioso. Soy capaz. Soy suficiente."',
        "duration": 3,
    },
]

EXPERTS: List[Dict[str, Any]] = [
    {
        "id": "exp_1",
        "name": "Dr. Sarah Smith",
        "specialization": "anxiety",
        "title": "Clinical Psychologist",
        "bio": "Expert in CBT and anxiety disorders with 10 years of experience.",
        "availability": "Mon-Fri 9am-5pm",
        "photo_url": "https://randomuser.me/api/portraits/women/44.jpg",
        "price": 80,
        "currency": "USD",
    },
    {
        "id": "exp_2",
        "name": "Carlos Rodriguez",
        "specialization": "stress",
        "title": "Mindfulness Coach",
        "bio": "Helping you find peace in a chaotic world.",
        "availability": "Tue-Thu 10am-6pm",
        "photo_url": "https://randomuser.me/api/portraits/men/32.jpg",
        "price": 50,
        "currency": "USD",
    },
]
