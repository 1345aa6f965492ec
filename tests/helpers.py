from dlq_naming import pascal_case, source_suffix

ACCOUNT_ID = "123456789012"
REGION = "eu-west-1"


def topic(name, region="us-east-1", account_id="111111111111"):
    return f"arn:aws:sns:{region}:{account_id}:{name}"


def compiled_resources(functions):
    """Resources the deployment framework compiles for the given declarations before the DLQ pass."""
    resources = {}
    for key, declaration in functions.items():
        resources[pascal_case(f"{key}LambdaFunction")] = {
            "Type": "AWS::Lambda::Function",
            "Properties": {
                "FunctionName": declaration.get("name", key),
                "Handler": "handler.main",
                "Runtime": "python3.12",
            },
        }
        for event in declaration.get("events", []):
            sns = event.get("sns")
            if sns is None:
                continue
            arn = sns if isinstance(sns, str) else sns["arn"]
            suffix = sns["topicName"] if isinstance(arn, dict) else source_suffix(arn)
            resources[pascal_case(f"{key}SnsSubscription{suffix}")] = {
                "Type": "AWS::SNS::Subscription",
                "Properties": {
                    "TopicArn": arn,
                    "Protocol": "lambda",
                    "Endpoint": {"Fn::GetAtt": [pascal_case(f"{key}LambdaFunction"), "Arn"]},
                },
            }
    return resources
