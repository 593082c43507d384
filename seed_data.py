import argparse
import logging
from sqlmodel import Session, select
from inksoul.db.session import engine, create_db_and_tables
from inksoul.core.security import get_password_hash
from inksoul.models.user import User, UserRole
from inksoul.services.product import seed_products

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("seed_data")

def ensure_admin(session: Session, email: str, password: str, name: str = "InkSoul Admin") -> User:
    user = session.exec(select(User).where(User.email == email.lower())).first()
    if user:
        if user.role != UserRole.ADMIN:
            user.role = UserRole.ADMIN
            session.add(user)
            session.commit()
            logger.info("Promoted %s to admin", email)
        return user

    user = User(
        name=name,
        email=email.lower(),
        password_hash=get_password_hash(password),
        role=UserRole.ADMIN,
        email_verified=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Created admin %s", email)
    return user

def main():
    parser = argparse.ArgumentParser(description="Create tables and load the sample catalogue")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    args = parser.parse_args()

    logger.info("Creating database and tables...")
    create_db_and_tables()

    with Session(engine) as session:
        admin_id = None
        if args.admin_email and args.admin_password:
            admin_id = ensure_admin(session, args.admin_email, args.admin_password).id
        created = seed_products(session, created_by=admin_id)
        logger.info("Successfully seeded %s products", created)

if __name__ == "__main__":
    main()
