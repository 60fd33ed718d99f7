from app.schemas.init import init_beanie_odm
from app.shared.storage.mongo import MongoManager


async def init_schema(mongo_manager: MongoManager, label: str):
    mongo_client = mongo_manager.get_client(label)
    db = mongo_client.get_default_database("paycast")
    await init_beanie_odm(db)
