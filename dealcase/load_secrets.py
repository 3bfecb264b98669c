import os
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER", "postgres")
password = os.getenv("DB_PASSWORD", "postgres")
host = os.getenv("DB_HOST", "localhost")
port = os.getenv("DB_PORT", "5432")
db_name = os.getenv("DB_NAME", "dealcase")
db_pool_size = int(os.getenv("DB_POOL_SIZE", "20"))

web3auth_issuer = os.getenv("WEB3AUTH_ISSUER", "https://api-auth.web3auth.io")
web3auth_client_id = os.getenv("WEB3AUTH_CLIENT_ID")
jwks_cache_seconds = float(os.getenv("JWKS_CACHE_SECONDS", "300"))

# Sepolia testnet
admin_address = os.getenv("ADMIN_ADDRESS", "0x510f0A4384bD93915B3977d7f2A91e4b1525c298")
admin_private_key = os.getenv("ADMIN_PRIVATE_KEY")
pyusd_address = os.getenv("PYUSD_ADDRESS", "0xCaC524BcA292aaade2DF8A05cC58F0a65B1B3bB9")
rpc_url = os.getenv("RPC_URL")
require_payment = os.getenv("REQUIRE_PAYMENT", "1") == "1"
prize_retry_minutes = int(os.getenv("PRIZE_RETRY_MINUTES", "30"))
sqlite_path = os.getenv("SQLITE_PATH")  # use a local SQLite file instead of PostgreSQL

if __name__ == "__main__":
    print(host, port, db_name, web3auth_issuer, admin_address, rpc_url, sqlite_path)
