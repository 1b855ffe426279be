"""Seed the development database with a demo business and prompt references."""

import os

from app.backend.src.db import get_engine, session_scope
from app.backend.src.models.base import Base
from app.backend.src.services.seed import seed_development_business


def main() -> None:
    """Create tables (if needed) and ensure demo data exists."""

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    member_id = int(os.environ.get("DEMO_MEMBER_ID", "1"))
    with session_scope() as session:
        result = seed_development_business(session, member_id=member_id)

        status = "created" if result.business_created else "unchanged"
        print("Development data ready!")
        print(
            f"Business ({status}): {result.business.business_name} "
            f"[id={result.business.id}, member_id={result.business.member_id}]"
        )
        if result.prompts_created:
            print(f"Prompt references added: {', '.join(result.prompts_created)}")
        else:
            print("Prompt references already present for this month.")


if __name__ == "__main__":
    main()
