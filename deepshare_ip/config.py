import os
from dotenv import load_dotenv

load_dotenv()

PORT = int(os.getenv("PORT", "3003"))

# --- Story Protocol network ---
RPC_URL = os.getenv("RPC_URL", "https://aeneid.storyrpc.io")
CHAIN_ID = os.getenv("CHAIN_ID", "aeneid")

# Server wallet that signs every Story Protocol transaction (mandatory)
PRIVATE_KEY = os.getenv("PRIVATE_KEY")

# Aeneid testnet deployments (override for mainnet)
REGISTRATION_WORKFLOWS_ADDRESS = os.getenv("REGISTRATION_WORKFLOWS_ADDRESS", "0xbe39E1C756e921BD25DF86e7AAa31106d1eb0424")
LICENSE_ATTACHMENT_WORKFLOWS_ADDRESS = os.getenv("LICENSE_ATTACHMENT_WORKFLOWS_ADDRESS", "0xcC2E862bCee5B6036Db0de6E06Ae87e524a79fd8")
IP_ASSET_REGISTRY_ADDRESS = os.getenv("IP_ASSET_REGISTRY_ADDRESS", "0x77319B4031e6eF1250907aa00018B8B1c67a244b")
LICENSING_MODULE_ADDRESS = os.getenv("LICENSING_MODULE_ADDRESS", "0x04fbd8a2e56dd85CFD5500A4A4DfA955B9f1dE6f")
ROYALTY_POLICY_LAP_ADDRESS = os.getenv("ROYALTY_POLICY_LAP_ADDRESS", "0xBe54FB168b3c982b7AaE60dB6CF75Bd8447b390E")
WIP_TOKEN_ADDRESS = os.getenv("WIP_TOKEN_ADDRESS", "0x1514000000000000000000000000000000000000")
COMMERCIAL_REMIX_TERMS_URI = os.getenv(
    "COMMERCIAL_REMIX_TERMS_URI",
    "https://github.com/piplabs/pil-document/blob/ad67bb632a310d2557f8abcccd428e4c9c798db1/off-chain-terms/CommercialRemix.json",
)

# --- SPG NFT collection ---
# A known collection address skips on-chain creation entirely
SPG_NFT_CONTRACT = os.getenv("SPG_NFT_CONTRACT")
COLLECTION_STATE_FILE = os.getenv("COLLECTION_STATE_FILE", "collection_state.json")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "DeepShare Evidence Collection")
COLLECTION_SYMBOL = os.getenv("COLLECTION_SYMBOL", "DEEPSHARE")

# --- IPFS (Pinata) ---
IPFS_GATEWAY = os.getenv("IPFS_GATEWAY", "https://gateway.pinata.cloud").rstrip("/")
# Gateway used for the metadata URIs bound on-chain
PUBLIC_IPFS_GATEWAY = os.getenv("PUBLIC_IPFS_GATEWAY", "https://ipfs.io").rstrip("/")
PINATA_API_URL = os.getenv("PINATA_API_URL", "https://api.pinata.cloud").rstrip("/")
PINATA_API_KEY = os.getenv("PINATA_API_KEY")
PINATA_SECRET_KEY = os.getenv("PINATA_SECRET_KEY")

# --- Supabase record store ---
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_KEY = SUPABASE_SERVICE_ROLE_KEY or os.getenv("SUPABASE_ANON_KEY")
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "images")

# --- Explorers ---
EXPLORER_URL = os.getenv("EXPLORER_URL", "https://aeneid.explorer.story.foundation").rstrip("/")
TX_EXPLORER_URL = os.getenv("TX_EXPLORER_URL", "https://aeneid.storyscan.io").rstrip("/")

# Allowed CORS origins, comma separated
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# --- License defaults (can be overridden per request) ---
# Minting fee stays a decimal string; it is converted to wei per request
DEFAULT_MINTING_FEE = os.getenv("DEFAULT_MINTING_FEE", "0.1")

try:
    DEFAULT_COMMERCIAL_REV_SHARE = int(os.getenv("DEFAULT_COMMERCIAL_REV_SHARE", "10"))
except ValueError:
    print("Warning: Invalid DEFAULT_COMMERCIAL_REV_SHARE in .env file. Defaulting to 10.")
    DEFAULT_COMMERCIAL_REV_SHARE = 10

try:
    PINATA_TIMEOUT_SECONDS = float(os.getenv("PINATA_TIMEOUT_SECONDS", "60"))
except ValueError:
    print("Warning: Invalid PINATA_TIMEOUT_SECONDS in .env file. Defaulting to 60.")
    PINATA_TIMEOUT_SECONDS = 60.0

try:
    LOW_BALANCE_THRESHOLD = float(os.getenv("LOW_BALANCE_THRESHOLD", "0.1"))
except ValueError:
    print("Warning: Invalid LOW_BALANCE_THRESHOLD in .env file. Defaulting to 0.1.")
    LOW_BALANCE_THRESHOLD = 0.1

# Basic validation
if not PRIVATE_KEY:
    print("Warning: PRIVATE_KEY not found in .env file. The server will refuse to start.")
if not PINATA_API_KEY or not PINATA_SECRET_KEY:
    print("Warning: PINATA_API_KEY / PINATA_SECRET_KEY not found in .env file. Metadata uploads will fail.")
if not SUPABASE_URL or not SUPABASE_KEY:
    print("Warning: Supabase credentials not found in .env file. IP registrations won't be saved to the database.")
