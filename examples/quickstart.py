"""
MongoAPI SDK Quickstart Example
"""

import os

from mongoapi_sdk import ClientConfig, MongoAPIClient


def main():
    # Initialize client with configuration
    config = ClientConfig(
        api_key=os.getenv("MONGOAPI_KEY"),
        base_url=os.getenv("MONGOAPI_URL", "http://127.0.0.1:3300"),
        debug=True,  # Enable debug logging
    )

    with MongoAPIClient(config) as client:
        print("Opening connection...")
        conn = client.create_connection(os.getenv("MONGO_URI", "mongodb://localhost:27017")).unwrap()
        players = client.get_collection(conn, "gamedb", "players").unwrap()

        inserted = client.insert_one(players, {"steamid": "STEAM_0:1:123", "name": 'Player "One"', "score": 0})
        if not inserted.success:
            print(f"✗ Insert failed: {inserted.error.message}")
            return
        print(f"✓ Inserted: {inserted.value.inserted_id}")

        found = client.find_one(players, {"steamid": "STEAM_0:1:123"})
        if found.found:
            print(f"✓ Found: {found.value['name']}")
        elif found.success:
            print("No matching player")

        client.update_one(players, {"steamid": "STEAM_0:1:123"}, {"$inc": {"score": 10}})

        # Async insert; the callback runs once on a worker thread
        client.insert_one_async(
            players,
            {"steamid": "STEAM_0:1:456", "name": "Player Two"},
            callback=lambda r: print(f"✓ Async insert: {r.success}"),
        ).result()

        stats = client.get_stats()
        print(f"\nOperations: {stats.total_operations} (success rate {client.get_success_rate():.1f}%)")

    print("\n✓ Quickstart complete!")


if __name__ == "__main__":
    main()
