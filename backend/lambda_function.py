from mangum import Mangum
from main import app

# Lambda entrypoint; lifespan events are not delivered by API Gateway
handler = Mangum(app, lifespan="off")


def lambda_handler(event, context):
    return handler(event, context)
