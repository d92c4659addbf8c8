# capgit: Load prompt templates from capgit.resources via importlib.resources so the wording can be maintained outside the code.

from importlib import resources


def get_prompt(name: str, **kwargs) -> str:
    """
    Load a text prompt from the capgit.resources package.

    If kwargs are provided, apply str.format(**kwargs) to the content so prompts can
    contain placeholders (e.g., {host}). Without kwargs the raw text is returned.
    """
    data = resources.files("capgit.resources").joinpath(name).read_text(encoding="utf-8")
    if kwargs:
        return data.format(**kwargs).rstrip("\n")
    return data
