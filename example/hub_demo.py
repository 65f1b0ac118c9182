import logging, os, time

from qry_publisher import IndexerStatus, create_publisher

def main():
    # Connects to a hub and publishes a few events
    # Set QRY_INSTANCE_PRIVATE_KEY to authenticate; without it the socket is anonymous
    logging.basicConfig(level=logging.INFO)

    pub = create_publisher(
        os.environ.get("QRY_HUB_URL", "localhost:7001"),
        instance_private_key=os.environ.get("QRY_INSTANCE_PRIVATE_KEY"),
        metadata={"chain": "demo", "version": "1.0"},
        on_connect=lambda: print("connected"),
        on_metadata_request=lambda: print("hub asked for metadata"),
        on_disconnect=lambda: print("disconnected"),
        on_not_registered=lambda err: print("register this key on the hub first:", err.public_key),
        auto_connect=True,
    )
    if pub.public_key:
        print("Instance public key:", pub.public_key)

    if not pub.connected:
        print("Not connected (hub down or authentication failed)")
        return

    pub.publish_indexer_status(IndexerStatus.ACTIVE)
    pub.publish_api_usage(5)
    pub.publish_api_usage_map({"/v1/chain/get_info": {200: 10, 500: 2}})

    time.sleep(0.5)
    pub.close()

if __name__ == "__main__":
    main()
