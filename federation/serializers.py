"""
serializers.py
─────────────────────────────────────────────────────────────────────
DRF serializers for every API resource.
"""
from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import password_validation
from rest_framework import serializers

from .constants import MEXICAN_STATES, SKILL_LEVELS
from .exceptions import BusinessRuleViolation
from .models import (
    AdminMessage, AdminMessageRecipient, Announcement, Banner, Club, CoachSearch, Court, CourtReservation,
    DigitalCredential, Expense, FinderPreference, Match, MatchRequest, Message, MicrositeFlag, MicrositeStatus,
    Notification, Payment, PlayCategory, Priority, Ranking, SkillLevel, Tournament, TournamentRegistration,
    TournamentTeam, TournamentTeamMember, User, UserType,
)
from .services.payment_service import PRICED_TYPES, PaymentService


# ════════════════════════════════════════════════════════════════════
#  Accounts
# ════════════════════════════════════════════════════════════════════

class UserSummarySerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model  = User
        fields = ["id", "username", "display_name", "user_type", "skill_level", "state", "city"]


PRIVATE_USER_FIELDS = [
    "id", "username", "email", "full_name", "display_name", "date_of_birth", "gender", "phone", "bio",
    "user_type", "skill_level", "membership_status", "membership_expires_at", "membership_active",
    "email_verified", "is_verified", "is_active",
    "state", "city", "address", "latitude", "longitude",
    "business_name", "contact_person", "job_title", "curp", "rfc", "website", "club", "microsite_status",
    "can_be_found", "is_findable", "coaching_experience", "specializations", "hourly_rate",
    "available_for_lessons", "rating", "reviews_count", "notification_preferences",
    "date_joined", "last_login",
]


class UserSerializer(serializers.ModelSerializer):
    display_name      = serializers.CharField(read_only=True)
    membership_active = serializers.SerializerMethodField()

    class Meta:
        model  = User
        fields = PRIVATE_USER_FIELDS
        read_only_fields = [
            "id", "email", "user_type", "membership_status", "membership_expires_at",
            "email_verified", "is_verified", "is_active", "microsite_status", "rating", "reviews_count",
            "date_joined", "last_login",
        ]

    def get_membership_active(self, obj) -> bool:
        return obj.is_membership_active()

    def validate_state(self, value):
        if value and value not in MEXICAN_STATES:
            raise serializers.ValidationError("Unknown state.")
        return value


class AdminUserSerializer(UserSerializer):
    class Meta(UserSerializer.Meta):
        read_only_fields = ["id", "email_verified", "rating", "reviews_count", "date_joined", "last_login"]


class PublicProfileSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    club_name    = serializers.CharField(source="club.name", read_only=True, default="")

    class Meta:
        model  = User
        fields = [
            "id", "username", "display_name", "user_type", "skill_level", "state", "city", "bio",
            "club_name", "coaching_experience", "specializations", "hourly_rate",
            "available_for_lessons", "rating", "reviews_count",
        ]


# admin accounts are granted by another admin or created with createsuperuser
SELF_SERVICE_USER_TYPES = [(value, label) for value, label in UserType.choices if value != UserType.ADMIN]


class RegisterSerializer(serializers.Serializer):
    user_type     = serializers.ChoiceField(choices=SELF_SERVICE_USER_TYPES)
    username      = serializers.RegexField(r"^[a-zA-Z0-9_]+$", min_length=3, max_length=50)
    email         = serializers.EmailField()
    password      = serializers.CharField(write_only=True, min_length=8)
    full_name     = serializers.CharField(required=False, allow_blank=True, max_length=200)
    business_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    privacy_policy_accepted = serializers.BooleanField(required=False, default=False)

    phone          = serializers.CharField(required=False, allow_blank=True, max_length=20)
    date_of_birth  = serializers.DateField(required=False, allow_null=True)
    gender         = serializers.ChoiceField(choices=User.Gender.choices, required=False, allow_blank=True)
    skill_level    = serializers.ChoiceField(choices=SkillLevel.choices, required=False, allow_blank=True)
    state          = serializers.CharField(required=False, allow_blank=True, max_length=50)
    city           = serializers.CharField(required=False, allow_blank=True, max_length=100)
    contact_person = serializers.CharField(required=False, allow_blank=True, max_length=200)
    job_title      = serializers.CharField(required=False, allow_blank=True, max_length=100)
    rfc            = serializers.CharField(required=False, allow_blank=True, max_length=13)
    curp           = serializers.RegexField(r"^[A-Za-z0-9]{18}$", required=False, allow_null=True)
    website        = serializers.URLField(required=False, allow_blank=True)

    def validate_curp(self, value):
        return value.upper() if value else None

    def validate_password(self, value):
        password_validation.validate_password(value)
        return value

    def validate_state(self, value):
        if value and value not in MEXICAN_STATES:
            raise serializers.ValidationError("Unknown state.")
        return value


class LoginSerializer(serializers.Serializer):
    email    = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class TokenSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetSerializer(serializers.Serializer):
    token    = serializers.CharField()
    password = serializers.CharField(write_only=True, min_length=8)

    def validate_password(self, value):
        password_validation.validate_password(value)
        return value


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password     = serializers.CharField(write_only=True, min_length=8)

    def validate_current_password(self, value):
        if not self.context["request"].user.check_password(value):
            raise serializers.ValidationError("Current password is incorrect.")
        return value

    def validate_new_password(self, value):
        password_validation.validate_password(value, self.context["request"].user)
        return value


class MembershipUpdateSerializer(serializers.Serializer):
    membership_status     = serializers.ChoiceField(choices=User.Membership.choices)
    membership_expires_at = serializers.DateTimeField(required=False, allow_null=True)


# ════════════════════════════════════════════════════════════════════
#  Clubs, courts, reservations
# ════════════════════════════════════════════════════════════════════

class ClubSerializer(serializers.ModelSerializer):
    owner        = UserSummarySerializer(read_only=True)
    full_address = serializers.CharField(read_only=True)
    court_count  = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()
    membership_active        = serializers.SerializerMethodField()
    can_organize_tournaments = serializers.SerializerMethodField()

    class Meta:
        model  = Club
        fields = [
            "id", "name", "club_type", "owner", "description", "email", "phone", "website",
            "state", "city", "address", "full_address", "latitude", "longitude",
            "has_courts", "offers_training", "offers_tournaments", "court_count", "member_count",
            "membership_status", "membership_expires_at", "subscription_plan", "membership_active",
            "can_organize_tournaments", "is_active", "is_verified", "is_featured",
            "created_at", "updated_at",
        ]
        read_only_fields = [
            "membership_status", "membership_expires_at", "subscription_plan",
            "is_verified", "is_featured", "created_at", "updated_at",
        ]

    def get_court_count(self, obj) -> int:
        return getattr(obj, "n_courts", None) or obj.courts.count()

    def get_member_count(self, obj) -> int:
        return getattr(obj, "n_members", None) or obj.members.count()

    def get_membership_active(self, obj) -> bool:
        return obj.is_membership_active()

    def get_can_organize_tournaments(self, obj) -> bool:
        return obj.can_organize_tournaments()

    def validate_state(self, value):
        if value not in MEXICAN_STATES:
            raise serializers.ValidationError("Unknown state.")
        return value


class CourtSerializer(serializers.ModelSerializer):
    member_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    club_name    = serializers.CharField(source="club.name", read_only=True)

    class Meta:
        model  = Court
        fields = [
            "id", "club", "club_name", "name", "court_type", "surface", "has_lighting", "description",
            "hourly_rate", "member_discount", "member_price", "is_available",
            "maintenance_start", "maintenance_end", "created_at",
        ]
        read_only_fields = ["club", "created_at"]

    def validate(self, attrs):
        start = attrs.get("maintenance_start", getattr(self.instance, "maintenance_start", None))
        end   = attrs.get("maintenance_end", getattr(self.instance, "maintenance_end", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"maintenance_end": ["Must be after maintenance_start."]})
        return attrs


class ReservationSerializer(serializers.ModelSerializer):
    user         = UserSummarySerializer(read_only=True)
    court_name   = serializers.CharField(source="court.name", read_only=True)
    club_name    = serializers.CharField(source="club.name", read_only=True)
    can_be_cancelled = serializers.SerializerMethodField()

    class Meta:
        model  = CourtReservation
        fields = [
            "id", "court", "court_name", "club", "club_name", "user",
            "start_time", "end_time", "reservation_date", "duration_hours",
            "purpose", "match_type", "participants", "guest_count", "notes",
            "hourly_rate", "total_amount", "member_discount", "final_amount",
            "payment_status", "status", "cancellation_reason", "cancelled_at", "refund_amount",
            "checked_in_at", "rating", "review", "booking_source", "recurrence_group",
            "can_be_cancelled", "created_at",
        ]
        read_only_fields = fields

    def get_can_be_cancelled(self, obj) -> bool:
        return obj.can_be_cancelled()


class BookingSerializer(serializers.Serializer):
    start_time     = serializers.DateTimeField()
    end_time       = serializers.DateTimeField()
    purpose        = serializers.CharField(required=False, allow_blank=True, max_length=200)
    match_type     = serializers.ChoiceField(choices=CourtReservation.MatchType.choices, required=False)
    participants   = serializers.ListField(child=serializers.CharField(), required=False)
    guest_count    = serializers.IntegerField(required=False, min_value=0, max_value=20)
    notes          = serializers.CharField(required=False, allow_blank=True)
    booking_source = serializers.ChoiceField(choices=CourtReservation.BookingSource.choices, required=False)


class RecurrenceSerializer(serializers.Serializer):
    pattern         = serializers.ChoiceField(choices=["daily", "weekly", "monthly"])
    interval        = serializers.IntegerField(required=False, min_value=1, default=1)
    days_of_week    = serializers.ListField(child=serializers.IntegerField(min_value=0, max_value=6),
                                            required=False, default=list)
    end_date        = serializers.DateField(required=False, allow_null=True)
    max_occurrences = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)


class RecurringBookingSerializer(BookingSerializer):
    recurrence = RecurrenceSerializer()


class ConflictCheckSerializer(serializers.Serializer):
    dates          = serializers.ListField(child=serializers.DateField(), min_length=1, max_length=100)
    start_time     = serializers.RegexField(r"^([01]\d|2[0-3]):[0-5]\d$")
    duration_hours = serializers.DecimalField(max_digits=4, decimal_places=2, min_value=Decimal("0.5"), max_value=16)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class RatingSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    review = serializers.CharField(required=False, allow_blank=True)


# ════════════════════════════════════════════════════════════════════
#  Tournaments
# ════════════════════════════════════════════════════════════════════

class TournamentSerializer(serializers.ModelSerializer):
    organizer       = UserSummarySerializer(read_only=True)
    confirmed_count = serializers.IntegerField(read_only=True)
    registration_open = serializers.SerializerMethodField()

    class Meta:
        model  = Tournament
        fields = [
            "id", "name", "description", "tournament_type", "category", "organizer", "organizer_type",
            "club", "venue_name", "venue_address", "state", "city",
            "start_date", "end_date", "registration_deadline",
            "max_participants", "min_participants", "confirmed_count", "registration_open",
            "skill_levels", "format", "entry_fee", "prize_pool", "status",
            "head_referee", "assistant_referees", "referee_compensation", "created_at",
        ]
        read_only_fields = [
            "organizer_type", "status", "head_referee", "assistant_referees", "referee_compensation", "created_at",
        ]

    def get_registration_open(self, obj) -> bool:
        return obj.is_registration_open()

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end   = attrs.get("end_date", getattr(self.instance, "end_date", None))
        deadline = attrs.get("registration_deadline", getattr(self.instance, "registration_deadline", None))
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": ["Must not be before start_date."]})
        if deadline and start and deadline.date() > start:
            raise serializers.ValidationError({"registration_deadline": ["Must be on or before start_date."]})
        low  = attrs.get("min_participants", getattr(self.instance, "min_participants", 2))
        high = attrs.get("max_participants", getattr(self.instance, "max_participants", 32))
        if low > high:
            raise serializers.ValidationError({"min_participants": ["Cannot exceed max_participants."]})
        if any(level not in SKILL_LEVELS for level in attrs.get("skill_levels") or []):
            raise serializers.ValidationError({"skill_levels": ["Unknown skill level."]})
        return attrs


class RegistrationSerializer(serializers.ModelSerializer):
    player  = UserSummarySerializer(read_only=True)
    partner = UserSummarySerializer(read_only=True)
    tournament_name = serializers.CharField(source="tournament.name", read_only=True)

    class Meta:
        model  = TournamentRegistration
        fields = [
            "id", "tournament", "tournament_name", "player", "partner", "category", "skill_level",
            "status", "entry_fee", "payment_status", "final_position", "points_earned", "registered_at",
        ]
        read_only_fields = fields


class RegisterForTournamentSerializer(serializers.Serializer):
    category    = serializers.ChoiceField(choices=PlayCategory.choices)
    skill_level = serializers.ChoiceField(choices=SkillLevel.choices)
    partner_id  = serializers.UUIDField(required=False, allow_null=True)


class FinalPositionsSerializer(serializers.Serializer):
    positions = serializers.DictField(child=serializers.IntegerField(min_value=1))   # registration id → position


class MatchSerializer(serializers.ModelSerializer):
    player1 = UserSummarySerializer(read_only=True)
    player2 = UserSummarySerializer(read_only=True)
    player1_id = serializers.PrimaryKeyRelatedField(source="player1", queryset=User.objects.all(), write_only=True)
    player2_id = serializers.PrimaryKeyRelatedField(source="player2", queryset=User.objects.all(), write_only=True)

    class Meta:
        model  = Match
        fields = [
            "id", "tournament", "court", "match_number", "round_number", "round_name", "scheduled_time",
            "status", "player1", "player2", "player1_id", "player2_id", "player1_partner", "player2_partner",
            "games", "winner", "referee", "match_format", "points_to_win", "win_by", "completed_at",
        ]
        read_only_fields = ["tournament", "games", "winner", "completed_at"]

    def validate(self, attrs):
        if attrs.get("player1") and attrs.get("player1") == attrs.get("player2"):
            raise serializers.ValidationError("A player cannot face themselves.")
        return attrs


class MatchResultSerializer(serializers.Serializer):
    games = serializers.ListField(
        child=serializers.ListField(child=serializers.IntegerField(min_value=0), min_length=2, max_length=2),
        min_length=1, max_length=5,
    )


# ════════════════════════════════════════════════════════════════════
#  Rankings & credentials
# ════════════════════════════════════════════════════════════════════

class RankingSerializer(serializers.ModelSerializer):
    user            = UserSummarySerializer(read_only=True)
    position_change = serializers.IntegerField(read_only=True)
    points_change   = serializers.IntegerField(read_only=True)
    improved        = serializers.BooleanField(read_only=True)

    class Meta:
        model  = Ranking
        fields = [
            "id", "user", "category", "skill_level", "state", "position", "points",
            "previous_position", "previous_points", "position_change", "points_change", "improved",
            "tournaments_played", "tournaments_won", "matches_played", "matches_won",
            "win_percentage", "best_finish", "ranking_period", "is_current", "last_updated",
        ]


class RecalculateSerializer(serializers.Serializer):
    category    = serializers.ChoiceField(choices=PlayCategory.choices)
    skill_level = serializers.ChoiceField(choices=SkillLevel.choices)
    state       = serializers.CharField(required=False, allow_blank=True, default="")
    period      = serializers.RegexField(r"^\d{4}$", required=False)


class CredentialSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model  = DigitalCredential
        fields = [
            "id", "user", "credential_number", "verification_code", "federation_name", "player_name",
            "nrtp_level", "state_affiliation", "nationality", "affiliation_status", "ranking_position",
            "club_status", "club_name", "qr_code_url", "qr_code_data", "issued_date", "expiry_date",
            "is_expired", "last_verified", "verification_count", "is_verified", "metadata",
        ]
        read_only_fields = fields

    def get_is_expired(self, obj) -> bool:
        return obj.is_expired()


class CredentialAdminUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model  = DigitalCredential
        fields = ["affiliation_status", "ranking_position", "expiry_date", "metadata"]


# ════════════════════════════════════════════════════════════════════
#  Messaging
# ════════════════════════════════════════════════════════════════════

class TargetFiltersSerializer(serializers.Serializer):
    user_ids          = serializers.ListField(child=serializers.UUIDField(), required=False)
    states            = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    cities            = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    membership_levels = serializers.ListField(
        child=serializers.ChoiceField(choices=User.Membership.choices), required=False)


class AdminMessageSerializer(serializers.ModelSerializer):
    read_rate  = serializers.FloatField(read_only=True)
    click_rate = serializers.FloatField(read_only=True)

    class Meta:
        model  = AdminMessage
        fields = [
            "id", "title", "content", "excerpt", "message_type", "priority", "status",
            "sender", "sender_name", "target_audience", "target_filters",
            "scheduled_send_at", "sent_at", "expires_at",
            "total_recipients", "sent_count", "read_count", "click_count", "read_rate", "click_rate",
            "action_button_text", "action_button_url", "is_pinned", "send_via_email",
            "send_via_notification", "tags", "metadata", "created_at", "updated_at",
        ]
        read_only_fields = [
            "status", "sender", "sender_name", "sent_at", "total_recipients", "sent_count",
            "read_count", "click_count", "created_at", "updated_at",
        ]

    def validate_target_filters(self, value):
        allowed = {"user_ids", "states", "cities", "membership_levels"}
        if not isinstance(value, dict):
            raise serializers.ValidationError("Must be an object.")
        unknown = set(value) - allowed
        if unknown:
            raise serializers.ValidationError(f"Unknown filter keys: {', '.join(sorted(unknown))}")
        filters = TargetFiltersSerializer(data=value)
        if not filters.is_valid():
            raise serializers.ValidationError(filters.errors)
        cleaned = dict(filters.validated_data)
        if "user_ids" in cleaned:
            cleaned["user_ids"] = [str(pk) for pk in cleaned["user_ids"]]
        return cleaned

    def validate(self, attrs):
        audience = attrs.get("target_audience", getattr(self.instance, "target_audience", None))
        filters  = attrs.get("target_filters", getattr(self.instance, "target_filters", None)) or {}
        if audience == AdminMessage.Audience.SPECIFIC_USERS and not filters.get("user_ids"):
            raise serializers.ValidationError({"target_filters": ["user_ids is required for specific_users."]})
        return attrs


class AdminMessageInboxSerializer(serializers.ModelSerializer):
    class Meta:
        model  = AdminMessage
        fields = [
            "id", "title", "content", "excerpt", "message_type", "priority", "sender_name",
            "sent_at", "expires_at", "action_button_text", "action_button_url", "is_pinned",
        ]


class AdminMessageRecipientSerializer(serializers.ModelSerializer):
    class Meta:
        model  = AdminMessageRecipient
        fields = [
            "id", "recipient", "recipient_email", "recipient_name", "recipient_type",
            "delivery_status", "sent_at", "delivered_at", "read_at", "clicked_at",
            "error_message", "is_dismissed",
        ]


class SendMessageSerializer(serializers.Serializer):
    send_immediately  = serializers.BooleanField(default=True)
    scheduled_send_at = serializers.DateTimeField(required=False, allow_null=True)
    background        = serializers.BooleanField(default=False)


class AnnouncementSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model  = Announcement
        fields = [
            "id", "title", "content", "summary", "category", "priority", "status",
            "publish_date", "expiry_date", "target_audience", "target_groups", "target_states",
            "author", "is_pinned", "send_notification", "view_count", "click_count", "like_count",
            "created_at", "updated_at",
        ]
        read_only_fields = ["status", "author", "view_count", "click_count", "like_count",
                            "created_at", "updated_at"]


class MessageSerializer(serializers.ModelSerializer):
    sender    = UserSummarySerializer(read_only=True)
    recipient = UserSummarySerializer(read_only=True)
    recipient_id = serializers.PrimaryKeyRelatedField(
        source="recipient", queryset=User.objects.filter(is_active=True), write_only=True,
    )

    class Meta:
        model  = Message
        fields = [
            "id", "subject", "content", "message_type", "category", "priority",
            "sender", "sender_type", "recipient", "recipient_id", "status",
            "is_read", "read_at", "is_starred", "is_archived", "is_automated",
            "related_entity_type", "related_entity_id", "created_at",
        ]
        read_only_fields = [
            "message_type", "sender", "sender_type", "status", "is_read", "read_at",
            "is_starred", "is_archived", "is_automated", "created_at",
        ]


class BroadcastDirectMessageSerializer(serializers.Serializer):
    subject    = serializers.CharField(max_length=200)
    content    = serializers.CharField()
    user_types = serializers.ListField(child=serializers.ChoiceField(choices=UserType.choices), min_length=1)
    priority   = serializers.ChoiceField(choices=Priority.choices, default="medium")


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model  = Notification
        fields = [
            "id", "type", "title", "message", "priority", "is_read", "read_at",
            "related_type", "related_id", "action_url", "expires_at", "created_at",
        ]
        read_only_fields = fields


class SendNotificationSerializer(serializers.Serializer):
    user_id  = serializers.UUIDField(required=False)
    type     = serializers.ChoiceField(choices=Notification.NotificationType.choices,
                                       default=Notification.NotificationType.SYSTEM_ANNOUNCEMENT)
    title    = serializers.CharField(max_length=200)
    message  = serializers.CharField()
    priority = serializers.ChoiceField(choices=Notification.Level.choices, default=Notification.Level.NORMAL)
    action_url = serializers.CharField(required=False, allow_blank=True, max_length=255)


# ════════════════════════════════════════════════════════════════════
#  Payments & expenses
# ════════════════════════════════════════════════════════════════════

class PaymentSerializer(serializers.ModelSerializer):
    user   = UserSummarySerializer(read_only=True)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"), required=False)

    class Meta:
        model  = Payment
        fields = [
            "id", "user", "amount", "currency", "payment_type", "description", "status",
            "payment_method", "gateway_payment_id", "registration", "reservation",
            "refund_amount", "refund_reason", "refunded_at", "processed_at", "metadata", "created_at",
        ]
        read_only_fields = [
            "currency", "status", "payment_method", "gateway_payment_id", "refund_amount", "refund_reason",
            "refunded_at", "processed_at", "created_at",
        ]

    def validate(self, attrs):
        user = self.context["request"].user
        payment_type = attrs.get("payment_type")
        registration = attrs.get("registration")
        reservation  = attrs.get("reservation")
        if registration and registration.player_id != user.pk:
            raise serializers.ValidationError({"registration": ["Not your registration."]})
        if reservation and reservation.user_id != user.pk:
            raise serializers.ValidationError({"reservation": ["Not your reservation."]})
        if registration and payment_type != Payment.PaymentType.TOURNAMENT_ENTRY:
            raise serializers.ValidationError({"payment_type": ["Registrations are paid as tournament_entry."]})
        if reservation and payment_type != Payment.PaymentType.COURT_RENTAL:
            raise serializers.ValidationError({"payment_type": ["Reservations are paid as court_rental."]})

        if payment_type in PRICED_TYPES:
            # any client amount is replaced by the server price
            try:
                attrs["amount"] = PaymentService.amount_due(
                    user, payment_type, registration, reservation, attrs.get("metadata"))
            except BusinessRuleViolation as exc:
                raise serializers.ValidationError({"amount": [str(exc.detail)]})
        elif attrs.get("amount") is None:
            raise serializers.ValidationError({"amount": ["This field is required."]})
        return attrs


class ProcessPaymentSerializer(serializers.Serializer):
    payment_method = serializers.CharField(default="card", max_length=100)


class RefundSerializer(serializers.Serializer):
    refund_amount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    refund_reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class ExpenseSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    approved_by = UserSummarySerializer(read_only=True)

    class Meta:
        model  = Expense
        fields = [
            "id", "description", "amount", "category", "tournament", "club", "created_by",
            "expense_date", "receipt_url", "notes", "status", "approved_by", "approved_at",
            "payment_method", "payment_reference", "created_at", "updated_at",
        ]
        read_only_fields = ["status", "approved_by", "approved_at", "created_at", "updated_at"]


# ════════════════════════════════════════════════════════════════════
#  Teams & referees
# ════════════════════════════════════════════════════════════════════

class TeamMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model  = TournamentTeamMember
        fields = ["id", "user", "role", "joined_at"]
        read_only_fields = fields


class TournamentTeamSerializer(serializers.ModelSerializer):
    captain         = UserSummarySerializer(read_only=True)
    members         = TeamMemberSerializer(many=True, read_only=True)
    current_players = serializers.IntegerField(read_only=True)

    class Meta:
        model  = TournamentTeam
        fields = [
            "id", "tournament", "captain", "team_name", "team_number", "category", "skill_level",
            "status", "entry_fee", "payment_status", "max_players", "current_players", "members",
            "final_position", "points", "matches_played", "matches_won", "registered_at",
        ]
        read_only_fields = fields


class CreateTeamSerializer(serializers.Serializer):
    team_name   = serializers.CharField(max_length=100)
    skill_level = serializers.ChoiceField(choices=SkillLevel.choices)
    category    = serializers.ChoiceField(choices=PlayCategory.choices, default=PlayCategory.DOUBLES)
    max_players = serializers.IntegerField(min_value=2, max_value=12, default=4)
    member_ids  = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class TeamMemberAddSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    role    = serializers.ChoiceField(
        choices=[(TournamentTeamMember.Role.PLAYER, "Player"), (TournamentTeamMember.Role.SUBSTITUTE, "Substitute")],
        default=TournamentTeamMember.Role.PLAYER,
    )


class TeamStandingSerializer(serializers.Serializer):
    final_position = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    points         = serializers.IntegerField(min_value=0, required=False)
    matches_played = serializers.IntegerField(min_value=0, required=False)
    matches_won    = serializers.IntegerField(min_value=0, required=False)


class TournamentRefereesSerializer(serializers.Serializer):
    head_referee_id       = serializers.UUIDField(required=False, allow_null=True)
    assistant_referee_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    referee_compensation  = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"),
                                                     required=False)

    def validate_assistant_referee_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("Each assistant can only be listed once.")
        return value


class MatchRefereeSerializer(serializers.Serializer):
    referee_id = serializers.UUIDField(allow_null=True)


# ════════════════════════════════════════════════════════════════════
#  Finder
# ════════════════════════════════════════════════════════════════════

class FinderPreferenceSerializer(serializers.ModelSerializer):
    DAYS  = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
    TIMES = ("morning", "afternoon", "evening", "night")

    availability_days  = serializers.ListField(child=serializers.ChoiceField(choices=DAYS), required=False)
    availability_times = serializers.ListField(child=serializers.ChoiceField(choices=TIMES), required=False)

    class Meta:
        model  = FinderPreference
        fields = [
            "skill_level_min", "skill_level_max", "preferred_gender", "age_min", "age_max",
            "search_radius_km", "match_type", "availability_days", "availability_times",
            "contact_method", "auto_notify", "is_active",
            "searches_count", "requests_sent", "requests_received", "matches_made", "last_search_at",
            "updated_at",
        ]
        read_only_fields = [
            "is_active", "searches_count", "requests_sent", "requests_received", "matches_made",
            "last_search_at", "updated_at",
        ]


class NearbyPlayerSerializer(serializers.Serializer):
    player      = PublicProfileSerializer(source="user")
    distance_km = serializers.FloatField()


class MatchRequestSerializer(serializers.ModelSerializer):
    sender   = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True)

    class Meta:
        model  = MatchRequest
        fields = [
            "id", "sender", "receiver", "message", "match_type", "proposed_time", "club", "status",
            "response_message", "responded_at", "created_at",
        ]
        read_only_fields = fields


class SendMatchRequestSerializer(serializers.Serializer):
    receiver_id   = serializers.UUIDField()
    message       = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    match_type    = serializers.ChoiceField(choices=FinderPreference.MatchType.choices,
                                            default=FinderPreference.MatchType.ANY)
    proposed_time = serializers.DateTimeField(required=False, allow_null=True)
    club          = serializers.PrimaryKeyRelatedField(queryset=Club.objects.filter(is_active=True),
                                                       required=False, allow_null=True)


class MatchResponseSerializer(serializers.Serializer):
    accept  = serializers.BooleanField()
    message = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class CoachSearchSerializer(serializers.ModelSerializer):
    specializations = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    class Meta:
        model  = CoachSearch
        fields = [
            "id", "state", "city", "specializations", "max_hourly_rate", "min_rating", "min_experience",
            "available_for_lessons", "is_active", "results_count", "last_run_at", "created_at", "updated_at",
        ]
        read_only_fields = ["is_active", "results_count", "last_run_at", "created_at", "updated_at"]

    def validate_state(self, value):
        if value and value not in MEXICAN_STATES:
            raise serializers.ValidationError("Unknown state.")
        return value


class ScoredCoachSerializer(serializers.Serializer):
    coach = PublicProfileSerializer()
    score = serializers.IntegerField()


# ════════════════════════════════════════════════════════════════════
#  Banners
# ════════════════════════════════════════════════════════════════════

class BannerSerializer(serializers.ModelSerializer):
    click_through_rate = serializers.FloatField(read_only=True)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    class Meta:
        model  = Banner
        fields = [
            "id", "title", "subtitle", "image_url", "thumbnail_url", "action_url", "action_text",
            "position", "is_active", "is_featured", "display_type", "target_audience",
            "start_date", "end_date", "tournament", "club", "tags", "metadata", "notes",
            "view_count", "click_count", "click_through_rate", "created_at", "updated_at",
        ]
        read_only_fields = ["view_count", "click_count", "created_at", "updated_at"]

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end   = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"end_date": ["Must be after start_date."]})
        return attrs


class PublicBannerSerializer(serializers.ModelSerializer):
    class Meta:
        model  = Banner
        fields = [
            "id", "title", "subtitle", "image_url", "thumbnail_url", "action_url", "action_text",
            "display_type", "is_featured", "tournament", "club", "tags",
        ]
        read_only_fields = fields


class BannerPositionSerializer(serializers.Serializer):
    position = serializers.IntegerField(min_value=0)


# ════════════════════════════════════════════════════════════════════
#  Microsite moderation
# ════════════════════════════════════════════════════════════════════

class MicrositeSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    open_flags   = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model  = User
        fields = [
            "id", "username", "display_name", "business_name", "user_type", "email", "state", "city",
            "website", "microsite_status", "is_active", "open_flags", "date_joined",
        ]
        read_only_fields = fields


class MicrositeStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MicrositeStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class MicrositeFlagSerializer(serializers.ModelSerializer):
    flagged_by  = UserSummarySerializer(read_only=True)
    resolved_by = UserSummarySerializer(read_only=True)
    auto_action = serializers.BooleanField(write_only=True, default=True)

    class Meta:
        model  = MicrositeFlag
        fields = [
            "id", "microsite", "flagged_by", "flag_type", "severity", "reason", "status", "action_taken",
            "auto_action", "resolution_notes", "resolved_by", "resolved_at", "created_at",
        ]
        read_only_fields = [
            "microsite", "status", "action_taken", "resolution_notes", "resolved_by", "resolved_at", "created_at",
        ]


class ResolveFlagSerializer(serializers.Serializer):
    dismiss = serializers.BooleanField(default=False)
    notes   = serializers.CharField(required=False, allow_blank=True)
    restore = serializers.BooleanField(default=False)


class MicrositeBulkSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.UUIDField(), min_length=1, max_length=100)
    action   = serializers.ChoiceField(choices=["activate", "deactivate", "suspend", "maintenance"])
    reason   = serializers.CharField(required=False, allow_blank=True, max_length=500)
