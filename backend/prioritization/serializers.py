# prioritization/serializers.py

from rest_framework import serializers


class RankingSubmissionSerializer(serializers.Serializer):
    """
    Body of a ranking submission. Only shape is checked here; duplicates and
    eligibility are the engine's job so the error carries the offending ids.
    """
    ordered_item_ids = serializers.ListField(
        child=serializers.CharField(max_length=64, allow_blank=False),
        allow_empty=True,
    )


class ViewItemSerializer(serializers.Serializer):
    item_id = serializers.CharField()
    aggregate_rank = serializers.IntegerField()
    score = serializers.FloatField()
    user_rank = serializers.IntegerField(allow_null=True)


class AggregateViewSerializer(serializers.Serializer):
    workgroup_id = serializers.IntegerField()
    eligibility_version = serializers.IntegerField()
    ranked = ViewItemSerializer(many=True)
    total_submitters = serializers.IntegerField()
    total_rankers = serializers.IntegerField()
    has_user_ranked = serializers.BooleanField()
    unranked_count = serializers.IntegerField()
    user_rank_became_stale_at = serializers.DateTimeField(allow_null=True)
    user_rank_updated_at = serializers.DateTimeField(allow_null=True)
    user_rank_expires_at = serializers.DateTimeField(allow_null=True)


class RankingStatusSerializer(serializers.Serializer):
    member_id = serializers.IntegerField()
    workgroup_id = serializers.IntegerField()
    has_ever_ranked = serializers.BooleanField()
    missing_ids = serializers.ListField(child=serializers.CharField())
    unranked_count = serializers.IntegerField()
    is_stale = serializers.BooleanField()
    is_expired = serializers.BooleanField()
    is_admissible = serializers.BooleanField()
    stale_since = serializers.DateTimeField(allow_null=True)
    expires_at = serializers.DateTimeField(allow_null=True)
    submitted_at = serializers.DateTimeField(allow_null=True)
