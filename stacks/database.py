from aws_cdk import RemovalPolicy, aws_dynamodb as ddb
from constructs import Construct


class Database(Construct):
    """The single multi-tenant table shared by every compute unit."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_name: str,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
    ) -> None:
        super().__init__(scope, construct_id)

        self._table = ddb.Table(
            self,
            "Table",
            table_name=app_name,
            partition_key=ddb.Attribute(name="PK", type=ddb.AttributeType.STRING),
            sort_key=ddb.Attribute(name="SK", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=True,
            removal_policy=removal_policy,
        )
        for n in range(1, 5):
            self._table.add_global_secondary_index(
                index_name=f"GSI{n}",
                partition_key=ddb.Attribute(name=f"GSI{n}PK", type=ddb.AttributeType.STRING),
                sort_key=ddb.Attribute(name=f"GSI{n}SK", type=ddb.AttributeType.STRING),
                projection_type=ddb.ProjectionType.ALL,
            )

    def get_table(self) -> ddb.Table:
        return self._table
