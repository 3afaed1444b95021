from rest_framework import serializers


class VisibilityQuerySerializer(serializers.Serializer):
    runner_id = serializers.CharField(max_length=64)
    # Optional evaluation time; defaults to the server clock
    at = serializers.DateTimeField(required=False)


class VisibilitySerializer(serializers.Serializer):
    task_id = serializers.CharField()
    runner_id = serializers.CharField()
    visible = serializers.BooleanField()
