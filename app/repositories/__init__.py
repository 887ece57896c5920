from app.repositories.basis_entries import BasisEntriesRepository
from app.repositories.jobs import ContentJobsRepository
from app.repositories.personal_thoughts import PersonalThoughtsRepository

__all__ = [
    "BasisEntriesRepository",
    "ContentJobsRepository",
    "PersonalThoughtsRepository",
]
