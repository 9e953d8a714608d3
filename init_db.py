from precast.db.database import init_db, engine
from precast.db.auto_migrate import ensure_invoice_history_ledger

def main():
    print("Creating database tables...")
    init_db()
    ensure_invoice_history_ledger(engine)
    print("Database tables created successfully!")

if __name__ == "__main__":
    main()
