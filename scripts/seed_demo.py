import asyncio
import random
import sys
from pathlib import Path
from traceback import print_exc

# Add project root to path to import the app package
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from knowme.core.exceptions import DuplicateKey  # noqa: E402
from knowme.models.profile import ProfileUpdate  # noqa: E402
from knowme.models.user import UserTier  # noqa: E402
from knowme.services.accounts import AccountService  # noqa: E402
from knowme.services.groups import GroupService  # noqa: E402
from knowme.services.profiles import ProfileService  # noqa: E402
from knowme.services.store import build_profile_store  # noqa: E402

DEMO_PASSWORD = "password"

FOUNDERS = [
    ("Alice Wonder", "alice@example.com", UserTier.PREMIUM, "Lead Designer with a passion for typography."),
    ("Bob Builder", "bob@example.com", UserTier.STANDARD, "Fixing things since 2010."),
    ("Charlie Chef", "charlie@example.com", UserTier.STANDARD, "Making the office smell great every lunch."),
]

TEAMS = [
    ("Engineering", "Building the core product.", "ENG2024", [
        ("Sarah Jenkins", "Frontend Dev"), ("Mike Chen", "Backend Lead"), ("Jessica Wu", "QA Engineer"),
        ("David Miller", "DevOps"), ("Emily Davis", "Product Manager"), ("James Wilson", "Full Stack"),
        ("Robert Taylor", "Mobile Dev"), ("Linda Anderson", "UX Research"), ("William Thomas", "System Arch"),
        ("Elizabeth Martinez", "Intern"),
    ]),
    ("Sales Team", "Global sales representatives.", "SALES24", [
        ("John Smith", "VP Sales"), ("Karen White", "Account Exec"), ("Kevin Brown", "SDR"),
        ("Laura Garcia", "Sales Ops"), ("Steven Robinson", "Regional Mgr"), ("Patricia Clark", "Account Mgr"),
        ("Christopher Rodriguez", "SDR Lead"), ("Barbara Lewis", "Customer Success"), ("Daniel Lee", "Solutions Eng"),
        ("Paul Walker", "Field Sales"),
    ]),
    ("Marketing", "Brand and outreach squad.", "MKT2024", [
        ("Jennifer Hall", "CMO"), ("Mark Allen", "Brand Mgr"), ("Maria Young", "Content Lead"),
        ("Charles King", "SEO Specialist"), ("Susan Wright", "Events Coord"), ("Joseph Scott", "Social Media"),
        ("Margaret Green", "Designer"), ("Thomas Baker", "Copywriter"), ("Nancy Adams", "Analyst"),
        ("Lisa Nelson", "PR Manager"),
    ]),
]

NATIONALITIES = ["USA", "UK", "Canada", "Spain", "Germany", "Australia"]


async def seed():
    store = build_profile_store()
    accounts = AccountService(store)
    groups = GroupService(store)
    profiles = ProfileService(store)

    try:
        founders = []
        for name, email, tier, bio in FOUNDERS:
            try:
                user = await accounts.signup(name, email, DEMO_PASSWORD, tier)
            except DuplicateKey:
                print(f"{email} already exists, skipping demo seed")
                return
            await profiles.update_own(user.id, ProfileUpdate(short_bio=bio))
            founders.append(user)

        alice = founders[0]
        design = await groups.create_group(alice, "Design Team", "The creative folks.", "DESIGN1", is_public=True)
        for user in founders[1:]:
            await groups.join_group(design.id, user.id)

        for team_name, description, code, people in TEAMS:
            group = await groups.create_group(alice, team_name, description, code, is_public=True)
            for name, role in people:
                email = f"{name.split(' ')[0].lower()}@knowme.demo"
                user = await accounts.signup(name, email, DEMO_PASSWORD)
                await profiles.update_own(
                    user.id,
                    ProfileUpdate(
                        short_bio=f"{role} at KnowMe Corp. Excited to be part of the {team_name} team!",
                        nationality=random.choice(NATIONALITIES),
                        fun_fact="I love trying new coffee spots and hiking on weekends.",
                    ),
                )
                await groups.join_group(group.id, user.id)
            print(f"Seeded {team_name} ({code}) with {len(people)} members")
    finally:
        await store.close()


def main():
    try:
        asyncio.run(seed())
    except Exception:
        print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
