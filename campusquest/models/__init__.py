from campusquest.models.user import UserData
from campusquest.models.location import Location
from campusquest.models.quiz import Quiz
from campusquest.models.collectible import Collectible, UserInventory
from campusquest.models.hunt import Hunt, UserHunt
from campusquest.models.quests import Quest, UserQuest

__all__ = [
    "UserData",
    "Location",
    "Quiz",
    "Collectible",
    "UserInventory",
    "Hunt",
    "UserHunt",
    "Quest",
    "UserQuest",
]
