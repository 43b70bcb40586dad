import structlog
from sqlalchemy.orm import Session

import crud
from llm_interaction import NO_SUGGESTION, CompletionProvider, build_suggestion_prompt

# Set up logging
logger = structlog.get_logger(__name__)


async def generate_suggestion(
    db: Session,
    provider: CompletionProvider,
    owner: str,
    resume: str,
    job_description: str,
) -> str:
    """Ask the completion provider for resume improvements and log the exchange.

    The log row is written only after the provider answers and before the text
    is handed back, so every suggestion a caller receives appears in that
    caller's history exactly once. Provider failures propagate as
    ProviderError and leave no row behind.
    """
    prompt = build_suggestion_prompt(resume, job_description)
    logger.info("Requesting suggestion", owner=owner, prompt_length=len(prompt))

    suggestion = await provider.complete(prompt)
    if not suggestion:
        logger.warning("Provider returned no content", owner=owner)
        suggestion = NO_SUGGESTION

    entry = crud.create_ai_log(
        db,
        owner=owner,
        resume=resume,
        job_description=job_description,
        suggestion=suggestion,
    )
    logger.info("Suggestion logged", owner=owner, ai_log_id=entry.id)
    return suggestion


def get_suggestion_history(db: Session, owner: str):
    return crud.get_ai_logs_for_user(db, owner)
