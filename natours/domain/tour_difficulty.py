from enum import Enum


class TourDifficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    difficult = "difficult"
