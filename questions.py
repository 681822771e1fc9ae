# Built-in sample quizzes, used when the data directory has no quiz files.
# Same shape as a data/quizzes/<id>.json object file.

QUIZZES = {
    "earth-basics": {
        "title": "Earth & Space Basics",
        "description": "A short warm-up covering every question type.",
        "category": "EarthSpaceScienceBasic",
        "items": [
            {
                "id": "eb1",
                "type": "multiple-choice",
                "question": "Which planet is closest to the Sun?",
                "options": ["Venus", "Mercury", "Mars", "Earth"],
                "answer": "Mercury",
                "explanation": "Mercury orbits at about 0.39 AU.",
                "hint": "It is also the smallest planet.",
                "subCategory": {"main": "Astronomy", "specific": "Solar System"},
            },
            {
                "id": "eb2",
                "type": "multi-select",
                "question": "Which of these are gas giants?",
                "options": ["Jupiter", "Saturn", "Mars", "Venus"],
                "answer": ["Jupiter", "Saturn"],
                "explanation": "Jupiter and Saturn are mostly hydrogen and helium.",
                "subCategory": {"main": "Astronomy", "specific": ["Solar System", "Planetary Science"]},
            },
            {
                "id": "eb3",
                "type": "fill-in",
                "question": "The boundary between Earth's crust and mantle is called the ____ discontinuity.",
                "answer": ["Mohorovicic", "Moho"],
                "explanation": "Named after Andrija Mohorovicic.",
                "hint": "Often shortened to four letters.",
                "subCategory": {"main": "Geology", "specific": "Earth Structure"},
            },
            {
                "id": "eb4",
                "type": "fill-in-number",
                "question": "Standard gravitational acceleration at Earth's surface (m/s^2)?",
                "answer": "9.8",
                "tolerance": 0.2,
                "unit": "m/s^2",
                "decimalPlaces": 1,
                "explanation": "g is approximately 9.81 m/s^2.",
                "subCategory": {"main": "Physics", "specific": "Mechanics"},
            },
            {
                "type": "scenario",
                "title": "Reading a weather map",
                "description": "A cold front is moving east across the region.",
                "subCategory": {"main": "Meteorology", "specific": "Air Masses & Fronts"},
                "questions": [
                    {
                        "id": "eb5",
                        "type": "multiple-choice",
                        "question": "What usually happens to temperature after a cold front passes?",
                        "options": ["It drops", "It rises", "It stays the same"],
                        "answer": "It drops",
                        "explanation": "Colder, denser air replaces the warm air mass.",
                    },
                    {
                        "id": "eb6",
                        "type": "multiple-choice",
                        "question": "Which cloud type is typical along a cold front?",
                        "options": ["Cumulonimbus", "Cirrus", "Stratus"],
                        "answer": "Cumulonimbus",
                        "explanation": "Rapid lifting builds tall convective clouds.",
                    },
                ],
            },
        ],
    },
}
