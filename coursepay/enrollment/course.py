from dataclasses import dataclass


@dataclass(frozen=True)
class Course:
    """Instantané immuable du cours, fourni par l'appelant (non possédé par le workflow)."""
    id: str
    title: str = ""
    thumbnail_url: str = ""
    is_premium: bool = False
    creator: str = ""
