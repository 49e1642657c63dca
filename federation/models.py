"""
Pickleball Sports Federation
Membership & operations platform
models.py - users, clubs, courts, tournaments, rankings, credentials, messaging
"""

import uuid
from decimal import Decimal

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import (
    MaxValueValidator, MinLengthValidator, MinValueValidator, RegexValidator,
)
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .constants import COURT_CLOSE_HOUR, COURT_OPEN_HOUR


# ─────────────────────────────────────────────
#  Validators
# ─────────────────────────────────────────────
username_validator = RegexValidator(
    regex=r'^[a-zA-Z0-9_]+$',
    message=_('Username may only contain letters, numbers and underscores.')
)

curp_validator = RegexValidator(
    regex=r'^[A-Z0-9]{18}$',
    message=_('CURP must be exactly 18 characters.')
)


# ─────────────────────────────────────────────
#  Shared Choices
# ─────────────────────────────────────────────
class UserType(models.TextChoices):
    PLAYER  = 'player',  _('Player')
    COACH   = 'coach',   _('Coach')
    CLUB    = 'club',    _('Club')
    PARTNER = 'partner', _('Partner')
    STATE   = 'state',   _('State committee')
    ADMIN   = 'admin',   _('Administrator')


BUSINESS_USER_TYPES = (UserType.CLUB, UserType.PARTNER, UserType.STATE)


class MicrositeStatus(models.TextChoices):
    ACTIVE      = 'active',      _('Active')
    INACTIVE    = 'inactive',    _('Inactive')
    PENDING     = 'pending',     _('Pending')
    MAINTENANCE = 'maintenance', _('Maintenance')
    SUSPENDED   = 'suspended',   _('Suspended')


class SkillLevel(models.TextChoices):
    L2_5 = '2.5', '2.5'
    L3_0 = '3.0', '3.0'
    L3_5 = '3.5', '3.5'
    L4_0 = '4.0', '4.0'
    L4_5 = '4.5', '4.5'
    L5_0 = '5.0', '5.0'
    L5_5 = '5.5', '5.5'


class PlayCategory(models.TextChoices):
    SINGLES       = 'singles',       _('Singles')
    DOUBLES       = 'doubles',       _('Doubles')
    MIXED_DOUBLES = 'mixed_doubles', _('Mixed doubles')


class Priority(models.TextChoices):
    LOW    = 'low',    _('Low')
    MEDIUM = 'medium', _('Medium')
    HIGH   = 'high',   _('High')
    URGENT = 'urgent', _('Urgent')


class PaymentState(models.TextChoices):
    PENDING  = 'pending',  _('Pending')
    PAID     = 'paid',     _('Paid')
    REFUNDED = 'refunded', _('Refunded')
    FAILED   = 'failed',   _('Failed')


# ─────────────────────────────────────────────
#  User Manager
# ─────────────────────────────────────────────
class UserManager(BaseUserManager):
    def create_user(self, email, username, password=None, **extra_fields):
        if not email:
            raise ValueError(_('Email is required.'))
        if not username:
            raise ValueError(_('Username is required.'))
        user = self.model(
            email=self.normalize_email(email).lower(),
            username=username.lower(),
            **extra_fields,
        )
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, username, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('user_type', UserType.ADMIN)
        extra_fields.setdefault('email_verified', True)
        extra_fields.setdefault('is_verified', True)
        return self.create_user(email, username, password, **extra_fields)


# ─────────────────────────────────────────────
#  User (single user_type per account)
# ─────────────────────────────────────────────
class User(AbstractBaseUser, PermissionsMixin):
    """
    Federation account. Individuals (player, coach, admin) carry personal
    data; business accounts (club, partner, state) carry business data.
    """

    class Gender(models.TextChoices):
        MALE              = 'male',              _('Male')
        FEMALE            = 'female',            _('Female')
        OTHER             = 'other',             _('Other')
        PREFER_NOT_TO_SAY = 'prefer_not_to_say', _('Prefer not to say')

    class Membership(models.TextChoices):
        FREE    = 'free',    _('Free')
        BASIC   = 'basic',   _('Basic')
        PREMIUM = 'premium', _('Premium')
        ELITE   = 'elite',   _('Elite')

    id          = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username    = models.CharField(_('username'), max_length=50, unique=True,
                                   validators=[username_validator, MinLengthValidator(3)])
    email       = models.EmailField(_('email'), unique=True)
    full_name   = models.CharField(_('full name'), max_length=200, blank=True)
    date_of_birth = models.DateField(_('date of birth'), null=True, blank=True)
    gender      = models.CharField(_('gender'), max_length=20, choices=Gender.choices, blank=True)
    phone       = models.CharField(_('phone'), max_length=20, blank=True)
    bio         = models.TextField(_('bio'), blank=True)

    user_type   = models.CharField(_('user type'), max_length=10, choices=UserType.choices,
                                   default=UserType.PLAYER, db_index=True)
    skill_level = models.CharField(_('NRTP level'), max_length=3, choices=SkillLevel.choices, blank=True)

    # ── Membership ───────────────────────────
    membership_status     = models.CharField(_('membership'), max_length=10,
                                             choices=Membership.choices, default=Membership.FREE)
    membership_expires_at = models.DateTimeField(_('membership expires'), null=True, blank=True)

    # ── Verification / recovery ──────────────
    email_verified                = models.BooleanField(_('email verified'), default=False)
    email_verification_token      = models.CharField(max_length=128, blank=True, db_index=True)
    email_verification_expires_at = models.DateTimeField(null=True, blank=True)
    password_reset_token          = models.CharField(max_length=128, blank=True, db_index=True)
    password_reset_expires_at     = models.DateTimeField(null=True, blank=True)

    # ── Account state ────────────────────────
    is_active      = models.BooleanField(_('active'), default=True)
    is_staff       = models.BooleanField(_('staff'), default=False)
    is_verified    = models.BooleanField(_('verified'), default=False)
    login_attempts = models.PositiveSmallIntegerField(default=0)
    locked_until   = models.DateTimeField(null=True, blank=True)
    date_joined    = models.DateTimeField(_('date joined'), default=timezone.now)

    # ── Location ─────────────────────────────
    state     = models.CharField(_('state'), max_length=50, blank=True, db_index=True)
    city      = models.CharField(_('city'), max_length=100, blank=True)
    address   = models.CharField(_('address'), max_length=255, blank=True)
    latitude  = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    # ── Business accounts (club / partner / state) ──
    business_name  = models.CharField(_('business name'), max_length=200, blank=True)
    contact_person = models.CharField(max_length=200, blank=True)
    job_title      = models.CharField(max_length=100, blank=True)
    curp           = models.CharField('CURP', max_length=18, unique=True, null=True, blank=True,
                                      validators=[curp_validator])
    rfc            = models.CharField('RFC', max_length=13, blank=True)
    website        = models.URLField(blank=True)
    microsite_status = models.CharField(_('microsite status'), max_length=12,
                                        choices=MicrositeStatus.choices, default=MicrositeStatus.ACTIVE)

    club = models.ForeignKey(
        'Club', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='members', verbose_name=_('affiliated club'),
    )

    # ── Finder visibility ────────────────────
    can_be_found = models.BooleanField(_('visible in player finder'), default=True)
    is_findable  = models.BooleanField(_('visible in coach finder'), default=False)

    # ── Coach profile ────────────────────────
    coaching_experience   = models.PositiveSmallIntegerField(_('years coaching'), null=True, blank=True)
    specializations       = models.JSONField(default=list, blank=True)
    hourly_rate           = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    available_for_lessons = models.BooleanField(default=False)
    rating                = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0'),
                                                validators=[MinValueValidator(0), MaxValueValidator(5)])
    reviews_count         = models.PositiveIntegerField(default=0)

    notification_preferences   = models.JSONField(default=dict, blank=True)
    privacy_policy_accepted    = models.BooleanField(default=False)
    privacy_policy_accepted_at = models.DateTimeField(null=True, blank=True)

    objects = UserManager()

    USERNAME_FIELD  = 'email'
    EMAIL_FIELD     = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        verbose_name        = _('user')
        verbose_name_plural = _('users')
        ordering            = ['full_name']

    def __str__(self):
        return f'{self.display_name} ({self.username})'

    def save(self, *args, **kwargs):
        self.email    = (self.email or '').lower()
        self.username = (self.username or '').lower()
        if self.user_type in (UserType.CLUB, UserType.PARTNER) and self.business_name:
            self.full_name = self.business_name
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.username

    def is_membership_active(self, now=None) -> bool:
        if self.membership_status == self.Membership.FREE:
            return True
        if not self.membership_expires_at:
            return True
        return self.membership_expires_at > (now or timezone.now())

    def can_access_premium_features(self) -> bool:
        return self.membership_status in (self.Membership.PREMIUM, self.Membership.ELITE)

    def is_locked(self, now=None) -> bool:
        return bool(self.locked_until and self.locked_until > (now or timezone.now()))

    @property
    def is_business(self) -> bool:
        return self.user_type in BUSINESS_USER_TYPES


# ─────────────────────────────────────────────
#  Club
# ─────────────────────────────────────────────
class Club(models.Model):

    class ClubType(models.TextChoices):
        RECREATIONAL = 'recreational', _('Recreational')
        COMPETITIVE  = 'competitive',  _('Competitive')
        TRAINING     = 'training',     _('Training')
        MIXED        = 'mixed',        _('Mixed')

    class MembershipStatus(models.TextChoices):
        ACTIVE    = 'active',    _('Active')
        EXPIRED   = 'expired',   _('Expired')
        SUSPENDED = 'suspended', _('Suspended')
        CANCELLED = 'cancelled', _('Cancelled')
        PENDING   = 'pending',   _('Pending')

    class Plan(models.TextChoices):
        BASIC   = 'basic',   _('Basic')
        PREMIUM = 'premium', _('Premium')

    name        = models.CharField(_('name'), max_length=200)
    club_type   = models.CharField(max_length=15, choices=ClubType.choices, default=ClubType.RECREATIONAL)
    owner       = models.ForeignKey(User, on_delete=models.CASCADE, related_name='owned_clubs')
    description = models.TextField(blank=True)
    email       = models.EmailField(blank=True)
    phone       = models.CharField(max_length=20, blank=True)
    website     = models.URLField(blank=True)

    state     = models.CharField(max_length=50, db_index=True)
    city      = models.CharField(max_length=100)
    address   = models.CharField(max_length=255, blank=True)
    latitude  = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    has_courts         = models.BooleanField(default=False)
    offers_training    = models.BooleanField(default=False)
    offers_tournaments = models.BooleanField(default=False)

    membership_status     = models.CharField(max_length=10, choices=MembershipStatus.choices,
                                             default=MembershipStatus.PENDING)
    membership_expires_at = models.DateTimeField(null=True, blank=True)
    subscription_plan     = models.CharField(max_length=10, choices=Plan.choices, default=Plan.BASIC)

    is_active   = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    is_featured = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f'{self.name} ({self.city}, {self.state})'

    def is_membership_active(self, now=None) -> bool:
        if self.membership_status != self.MembershipStatus.ACTIVE:
            return False
        return not self.membership_expires_at or self.membership_expires_at > (now or timezone.now())

    def can_organize_tournaments(self) -> bool:
        return self.subscription_plan == self.Plan.PREMIUM and self.is_membership_active()

    def can_rent_courts(self) -> bool:
        return self.has_courts and self.can_organize_tournaments()

    @property
    def full_address(self) -> str:
        return ', '.join(p for p in (self.address, self.city, self.state, 'México') if p)


# ─────────────────────────────────────────────
#  Court
# ─────────────────────────────────────────────
class Court(models.Model):

    class CourtType(models.TextChoices):
        INDOOR  = 'indoor',  _('Indoor')
        OUTDOOR = 'outdoor', _('Outdoor')
        COVERED = 'covered', _('Covered')

    class Surface(models.TextChoices):
        CONCRETE  = 'concrete',  _('Concrete')
        ASPHALT   = 'asphalt',   _('Asphalt')
        SYNTHETIC = 'synthetic', _('Synthetic')
        GRASS     = 'grass',     _('Grass')
        CLAY      = 'clay',      _('Clay')

    club         = models.ForeignKey(Club, on_delete=models.CASCADE, related_name='courts')
    name         = models.CharField(max_length=100)
    court_type   = models.CharField(max_length=10, choices=CourtType.choices, default=CourtType.OUTDOOR)
    surface      = models.CharField(max_length=10, choices=Surface.choices, default=Surface.CONCRETE)
    has_lighting = models.BooleanField(default=False)
    description  = models.TextField(blank=True)

    hourly_rate     = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    member_discount = models.DecimalField(_('member discount %'), max_digits=5, decimal_places=2,
                                          default=Decimal('0'),
                                          validators=[MinValueValidator(0), MaxValueValidator(100)])

    is_available      = models.BooleanField(default=True)
    maintenance_start = models.DateTimeField(null=True, blank=True)
    maintenance_end   = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering        = ['club', 'name']
        unique_together = [('club', 'name')]

    def __str__(self):
        return f'{self.club.name} / {self.name}'

    @property
    def member_price(self) -> Decimal:
        return (self.hourly_rate * (1 - self.member_discount / 100)).quantize(Decimal('0.01'))

    def is_available_for_booking(self, start, end) -> bool:
        from .services.scheduling import overlaps
        if not self.is_available:
            return False
        if self.maintenance_start and self.maintenance_end:
            return not overlaps(start, end, self.maintenance_start, self.maintenance_end)
        return True

    @property
    def daily_open_hours(self) -> int:
        return COURT_CLOSE_HOUR - COURT_OPEN_HOUR


# ─────────────────────────────────────────────
#  Court Reservation
# ─────────────────────────────────────────────
class CourtReservation(models.Model):

    class Status(models.TextChoices):
        PENDING   = 'pending',   _('Pending')
        CONFIRMED = 'confirmed', _('Confirmed')
        CANCELLED = 'cancelled', _('Cancelled')
        COMPLETED = 'completed', _('Completed')
        NO_SHOW   = 'no_show',   _('No show')

    class MatchType(models.TextChoices):
        SINGLES       = 'singles',       _('Singles')
        DOUBLES       = 'doubles',       _('Doubles')
        MIXED_DOUBLES = 'mixed_doubles', _('Mixed doubles')
        PRACTICE      = 'practice',      _('Practice')
        LESSON        = 'lesson',        _('Lesson')
        OTHER         = 'other',         _('Other')

    class BookingSource(models.TextChoices):
        WEB       = 'web',       _('Web')
        MOBILE    = 'mobile',    _('Mobile')
        PHONE     = 'phone',     _('Phone')
        IN_PERSON = 'in_person', _('In person')

    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED)

    id               = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    court            = models.ForeignKey(Court, on_delete=models.CASCADE, related_name='reservations')
    user             = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reservations')
    club             = models.ForeignKey(Club, on_delete=models.CASCADE, related_name='reservations')
    start_time       = models.DateTimeField(db_index=True)
    end_time         = models.DateTimeField()
    reservation_date = models.DateField(db_index=True)
    duration_hours   = models.DecimalField(max_digits=5, decimal_places=2)
    purpose          = models.CharField(max_length=200, blank=True)
    match_type       = models.CharField(max_length=15, choices=MatchType.choices, default=MatchType.PRACTICE)
    participants     = models.JSONField(default=list, blank=True)
    guest_count      = models.PositiveSmallIntegerField(default=0)
    notes            = models.TextField(blank=True)

    # ── Pricing ──────────────────────────────
    hourly_rate     = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount    = models.DecimalField(max_digits=10, decimal_places=2)
    member_discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    final_amount    = models.DecimalField(max_digits=10, decimal_places=2)

    payment_status = models.CharField(max_length=10, choices=PaymentState.choices, default=PaymentState.PENDING)
    status         = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)

    # ── Cancellation ─────────────────────────
    cancellation_reason = models.CharField(max_length=255, blank=True)
    cancelled_at        = models.DateTimeField(null=True, blank=True)
    cancelled_by        = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                            related_name='+')
    refund_amount       = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))

    checked_in_at  = models.DateTimeField(null=True, blank=True)
    rating         = models.PositiveSmallIntegerField(null=True, blank=True,
                                                      validators=[MinValueValidator(1), MaxValueValidator(5)])
    review         = models.TextField(blank=True)
    booking_source = models.CharField(max_length=10, choices=BookingSource.choices, default=BookingSource.WEB)
    recurrence_group = models.UUIDField(null=True, blank=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['start_time']
        indexes  = [models.Index(fields=['court', 'start_time', 'end_time'])]

    def __str__(self):
        return f'{self.court} {self.start_time:%Y-%m-%d %H:%M} ({self.get_status_display()})'

    def can_be_cancelled(self, now=None) -> bool:
        from .services.scheduling import can_cancel
        return can_cancel(self.status, self.start_time, now or timezone.now())

    def refund_for_cancellation(self, now=None) -> Decimal:
        from .services.scheduling import refund_amount
        return refund_amount(self.final_amount, self.start_time, now or timezone.now())


# ─────────────────────────────────────────────
#  Tournament
# ─────────────────────────────────────────────
class Tournament(models.Model):

    class TournamentType(models.TextChoices):
        LOCAL         = 'local',         _('Local')
        STATE         = 'state',         _('State')
        NATIONAL      = 'national',      _('National')
        INTERNATIONAL = 'international', _('International')
        EXHIBITION    = 'exhibition',    _('Exhibition')
        LEAGUE        = 'league',        _('League')

    class Category(models.TextChoices):
        SINGLES       = 'singles',       _('Singles')
        DOUBLES       = 'doubles',       _('Doubles')
        MIXED_DOUBLES = 'mixed_doubles', _('Mixed doubles')
        TEAM          = 'team',          _('Team')

    class OrganizerType(models.TextChoices):
        CLUB       = 'club',       _('Club')
        PARTNER    = 'partner',    _('Partner')
        STATE      = 'state',      _('State committee')
        FEDERATION = 'federation', _('Federation')

    class Format(models.TextChoices):
        SINGLE_ELIMINATION = 'single_elimination', _('Single elimination')
        DOUBLE_ELIMINATION = 'double_elimination', _('Double elimination')
        ROUND_ROBIN        = 'round_robin',        _('Round robin')
        SWISS_SYSTEM       = 'swiss_system',       _('Swiss system')
        CUSTOM             = 'custom',             _('Custom')

    class Status(models.TextChoices):
        DRAFT               = 'draft',               _('Draft')
        PUBLISHED           = 'published',           _('Published')
        REGISTRATION_OPEN   = 'registration_open',   _('Registration open')
        REGISTRATION_CLOSED = 'registration_closed', _('Registration closed')
        IN_PROGRESS         = 'in_progress',         _('In progress')
        COMPLETED           = 'completed',           _('Completed')
        CANCELLED           = 'cancelled',           _('Cancelled')

    name            = models.CharField(max_length=200)
    description     = models.TextField(blank=True)
    tournament_type = models.CharField(max_length=15, choices=TournamentType.choices, default=TournamentType.LOCAL)
    category        = models.CharField(max_length=15, choices=Category.choices, default=Category.SINGLES)
    organizer       = models.ForeignKey(User, on_delete=models.CASCADE, related_name='organized_tournaments')
    organizer_type  = models.CharField(max_length=10, choices=OrganizerType.choices, default=OrganizerType.CLUB)
    club            = models.ForeignKey(Club, on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name='tournaments')

    venue_name    = models.CharField(max_length=200, blank=True)
    venue_address = models.CharField(max_length=255, blank=True)
    state         = models.CharField(max_length=50, db_index=True)
    city          = models.CharField(max_length=100)

    start_date            = models.DateField()
    end_date              = models.DateField()
    registration_deadline = models.DateTimeField()

    max_participants = models.PositiveIntegerField(default=32)
    min_participants = models.PositiveIntegerField(default=2)
    skill_levels     = models.JSONField(default=list, blank=True)
    format           = models.CharField(max_length=20, choices=Format.choices, default=Format.SINGLE_ELIMINATION)
    entry_fee        = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    prize_pool       = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    status           = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)

    # ── Officials ────────────────────────────
    head_referee         = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                             related_name='head_refereed_tournaments')
    assistant_referees   = models.ManyToManyField(User, blank=True, related_name='assisted_tournaments')
    referee_compensation = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_date']

    def __str__(self):
        return f'{self.name} ({self.start_date})'

    @property
    def confirmed_count(self) -> int:
        return self.registrations.filter(status=TournamentRegistration.Status.CONFIRMED).count()

    def is_registration_open(self, now=None) -> bool:
        return (
            self.status == self.Status.REGISTRATION_OPEN
            and (now or timezone.now()) < self.registration_deadline
        )

    def is_full(self) -> bool:
        return self.confirmed_count >= self.max_participants

    def can_start(self) -> bool:
        return self.confirmed_count >= self.min_participants


class TournamentRegistration(models.Model):

    class Status(models.TextChoices):
        PENDING   = 'pending',   _('Pending')
        CONFIRMED = 'confirmed', _('Confirmed')
        CANCELLED = 'cancelled', _('Cancelled')
        WAITLIST  = 'waitlist',  _('Waitlist')

    tournament     = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name='registrations')
    player         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tournament_registrations')
    partner        = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                       related_name='partner_registrations')
    category       = models.CharField(max_length=15, choices=PlayCategory.choices, default=PlayCategory.SINGLES)
    skill_level    = models.CharField(max_length=3, choices=SkillLevel.choices)
    status         = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    entry_fee      = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    payment_status = models.CharField(max_length=10, choices=PaymentState.choices, default=PaymentState.PENDING)
    final_position = models.PositiveIntegerField(null=True, blank=True)
    points_earned  = models.PositiveIntegerField(default=0)
    registered_at  = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering        = ['registered_at']
        unique_together = [('tournament', 'player')]

    def __str__(self):
        return f'{self.player} @ {self.tournament}'

    def can_cancel(self) -> bool:
        return self.status in (self.Status.PENDING, self.Status.CONFIRMED)


class Match(models.Model):

    class Status(models.TextChoices):
        SCHEDULED   = 'scheduled',   _('Scheduled')
        IN_PROGRESS = 'in_progress', _('In progress')
        COMPLETED   = 'completed',   _('Completed')
        CANCELLED   = 'cancelled',   _('Cancelled')
        POSTPONED   = 'postponed',   _('Postponed')

    class MatchFormat(models.TextChoices):
        BEST_OF_1 = 'best_of_1', _('Best of 1')
        BEST_OF_3 = 'best_of_3', _('Best of 3')
        BEST_OF_5 = 'best_of_5', _('Best of 5')

    tournament     = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name='matches')
    court          = models.ForeignKey(Court, on_delete=models.SET_NULL, null=True, blank=True, related_name='matches')
    match_number   = models.PositiveIntegerField()
    round_number   = models.PositiveIntegerField(default=1)
    round_name     = models.CharField(max_length=50, blank=True)
    scheduled_time = models.DateTimeField(null=True, blank=True)
    status         = models.CharField(max_length=12, choices=Status.choices, default=Status.SCHEDULED)

    player1         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='matches_as_player1')
    player2         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='matches_as_player2')
    player1_partner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    player2_partner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    games   = models.JSONField(default=list, blank=True)   # [[p1, p2], ...]
    winner  = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='matches_won')
    referee = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='refereed_matches')

    match_format  = models.CharField(max_length=10, choices=MatchFormat.choices, default=MatchFormat.BEST_OF_3)
    points_to_win = models.PositiveSmallIntegerField(default=11)
    win_by        = models.PositiveSmallIntegerField(default=2)
    completed_at  = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering        = ['tournament', 'round_number', 'match_number']
        unique_together = [('tournament', 'match_number')]
        verbose_name_plural = 'matches'

    def __str__(self):
        return f'#{self.match_number} {self.player1} vs {self.player2}'

    @property
    def loser(self):
        if not self.winner_id:
            return None
        return self.player2 if self.winner_id == self.player1_id else self.player1


# ─────────────────────────────────────────────
#  Ranking
# ─────────────────────────────────────────────
class Ranking(models.Model):
    """
    One row per (player, category, level, state, period).
    state="" is the national bucket.
    """
    user        = models.ForeignKey(User, on_delete=models.CASCADE, related_name='rankings')
    category    = models.CharField(max_length=15, choices=PlayCategory.choices)
    skill_level = models.CharField(max_length=3, choices=SkillLevel.choices)
    state       = models.CharField(max_length=50, blank=True, db_index=True)

    position          = models.PositiveIntegerField()
    points            = models.PositiveIntegerField(default=0)
    previous_position = models.PositiveIntegerField(null=True, blank=True)
    previous_points   = models.PositiveIntegerField(null=True, blank=True)

    tournaments_played = models.PositiveIntegerField(default=0)
    tournaments_won    = models.PositiveIntegerField(default=0)
    matches_played     = models.PositiveIntegerField(default=0)
    matches_won        = models.PositiveIntegerField(default=0)
    win_percentage     = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    best_finish        = models.PositiveIntegerField(null=True, blank=True)

    ranking_period = models.CharField(max_length=7, db_index=True)
    is_current     = models.BooleanField(default=True)
    history        = models.JSONField(default=list, blank=True)
    last_updated   = models.DateTimeField(auto_now=True)

    class Meta:
        ordering        = ['category', 'skill_level', 'position']
        unique_together = [('user', 'category', 'skill_level', 'state', 'ranking_period')]

    def __str__(self):
        scope = self.state or 'National'
        return f'#{self.position} {self.user} ({self.category} {self.skill_level}, {scope})'

    @property
    def position_change(self) -> int:
        if self.previous_position is None:
            return 0
        return self.previous_position - self.position

    @property
    def points_change(self) -> int:
        if self.previous_points is None:
            return 0
        return self.points - self.previous_points

    @property
    def improved(self) -> bool:
        return self.previous_position is not None and self.position < self.previous_position


# ─────────────────────────────────────────────
#  Digital Credential
# ─────────────────────────────────────────────
class DigitalCredential(models.Model):

    class AffiliationStatus(models.TextChoices):
        ACTIVE    = 'active',    _('Active')
        INACTIVE  = 'inactive',  _('Inactive')
        SUSPENDED = 'suspended', _('Suspended')
        EXPIRED   = 'expired',   _('Expired')

    class ClubStatus(models.TextChoices):
        CLUB_MEMBER = 'club_member', _('Club member')
        INDEPENDENT = 'independent', _('Independent')

    id                = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user              = models.OneToOneField(User, on_delete=models.CASCADE, related_name='credential')
    credential_number = models.CharField(max_length=20, unique=True)
    verification_code = models.CharField(max_length=8, unique=True)

    federation_name    = models.CharField(max_length=200, default='Pickleball Sports Federation')
    player_name        = models.CharField(max_length=200)
    nrtp_level         = models.CharField(max_length=3, blank=True)
    state_affiliation  = models.CharField(max_length=50, blank=True)
    nationality        = models.CharField(max_length=50, default='Mexican')
    affiliation_status = models.CharField(max_length=10, choices=AffiliationStatus.choices,
                                          default=AffiliationStatus.ACTIVE)
    ranking_position   = models.PositiveIntegerField(null=True, blank=True)
    club_status        = models.CharField(max_length=12, choices=ClubStatus.choices,
                                          default=ClubStatus.INDEPENDENT)
    club_name          = models.CharField(max_length=200, blank=True)

    qr_code_url  = models.TextField(blank=True)   # data:image/png;base64,...
    qr_code_data = models.TextField(blank=True)
    qr_jwt_token = models.TextField(blank=True)
    digital_signature = models.CharField(max_length=64, blank=True)

    issued_date        = models.DateTimeField(default=timezone.now)
    expiry_date        = models.DateTimeField()
    last_verified      = models.DateTimeField(null=True, blank=True)
    verification_count = models.PositiveIntegerField(default=0)
    verification_log   = models.JSONField(default=list, blank=True)
    is_verified        = models.BooleanField(default=True)
    metadata           = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-issued_date']

    def __str__(self):
        return f'{self.credential_number} — {self.player_name}'

    def is_expired(self, now=None) -> bool:
        return self.expiry_date <= (now or timezone.now())

    def is_valid(self, now=None) -> bool:
        return (
            self.affiliation_status == self.AffiliationStatus.ACTIVE
            and not self.is_expired(now)
        )


# ─────────────────────────────────────────────
#  Admin Broadcast Messages
# ─────────────────────────────────────────────
class AdminMessage(models.Model):
    """
    Admin-authored broadcast with audience targeting and per-recipient
    delivery / read / click tracking.
    """

    class MessageType(models.TextChoices):
        ANNOUNCEMENT = 'announcement', _('Announcement')
        NOTIFICATION = 'notification', _('Notification')
        ALERT        = 'alert',        _('Alert')
        REMINDER     = 'reminder',     _('Reminder')
        NEWSLETTER   = 'newsletter',   _('Newsletter')

    class Status(models.TextChoices):
        DRAFT     = 'draft',     _('Draft')
        SCHEDULED = 'scheduled', _('Scheduled')
        SENDING   = 'sending',   _('Sending')
        SENT      = 'sent',      _('Sent')
        CANCELLED = 'cancelled', _('Cancelled')

    class Audience(models.TextChoices):
        ALL_USERS       = 'all_users',       _('All users')
        PLAYERS         = 'players',         _('Players')
        COACHES         = 'coaches',         _('Coaches')
        CLUBS           = 'clubs',           _('Clubs')
        PARTNERS        = 'partners',        _('Partners')
        STATES          = 'states',          _('State committees')
        PLAYERS_COACHES = 'players_coaches', _('Players and coaches')
        BUSINESS_USERS  = 'business_users',  _('Business users')
        SPECIFIC_USERS  = 'specific_users',  _('Specific users')
        BY_LOCATION     = 'by_location',     _('By location')
        BY_MEMBERSHIP   = 'by_membership',   _('By membership')

    EDITABLE_STATUSES = (Status.DRAFT, Status.SCHEDULED)

    title        = models.CharField(max_length=200)
    content      = models.TextField()
    excerpt      = models.CharField(max_length=500, blank=True)
    message_type = models.CharField(max_length=15, choices=MessageType.choices, default=MessageType.ANNOUNCEMENT)
    priority     = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    status       = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT, db_index=True)

    sender      = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='sent_admin_messages')
    sender_name = models.CharField(max_length=200, blank=True)

    target_audience = models.CharField(max_length=20, choices=Audience.choices, default=Audience.ALL_USERS)
    target_filters  = models.JSONField(default=dict, blank=True)

    scheduled_send_at = models.DateTimeField(null=True, blank=True, db_index=True)
    sent_at           = models.DateTimeField(null=True, blank=True)
    expires_at        = models.DateTimeField(null=True, blank=True)

    total_recipients = models.PositiveIntegerField(default=0)
    sent_count       = models.PositiveIntegerField(default=0)
    read_count       = models.PositiveIntegerField(default=0)
    click_count      = models.PositiveIntegerField(default=0)

    action_button_text    = models.CharField(max_length=100, blank=True)
    action_button_url     = models.URLField(blank=True)
    is_pinned             = models.BooleanField(default=False)
    send_via_email        = models.BooleanField(default=True)
    send_via_notification = models.BooleanField(default=True)
    tags                  = models.JSONField(default=list, blank=True)
    metadata              = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.title} [{self.status}]'

    def save(self, *args, **kwargs):
        if not self.excerpt:
            self.excerpt = self.content[:200]
        super().save(*args, **kwargs)

    @property
    def is_editable(self) -> bool:
        return self.status in self.EDITABLE_STATUSES

    @property
    def read_rate(self) -> float:
        from .services.audience import percentage
        return percentage(self.read_count, self.sent_count)

    @property
    def click_rate(self) -> float:
        from .services.audience import percentage
        return percentage(self.click_count, self.read_count)


class AdminMessageRecipient(models.Model):

    class DeliveryStatus(models.TextChoices):
        PENDING   = 'pending',   _('Pending')
        SENT      = 'sent',      _('Sent')
        DELIVERED = 'delivered', _('Delivered')
        FAILED    = 'failed',    _('Failed')
        BOUNCED   = 'bounced',   _('Bounced')

    message         = models.ForeignKey(AdminMessage, on_delete=models.CASCADE, related_name='recipients')
    recipient       = models.ForeignKey(User, on_delete=models.CASCADE, related_name='admin_messages')
    recipient_email = models.EmailField()
    recipient_name  = models.CharField(max_length=200, blank=True)
    recipient_type  = models.CharField(max_length=10, choices=UserType.choices)

    delivery_status = models.CharField(max_length=10, choices=DeliveryStatus.choices,
                                       default=DeliveryStatus.PENDING, db_index=True)
    sent_at       = models.DateTimeField(null=True, blank=True)
    delivered_at  = models.DateTimeField(null=True, blank=True)
    read_at       = models.DateTimeField(null=True, blank=True)
    clicked_at    = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True)
    is_dismissed  = models.BooleanField(default=False)
    dismissed_at  = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = [('message', 'recipient')]
        ordering        = ['recipient_name']

    def __str__(self):
        return f'{self.recipient_email} ← {self.message_id} ({self.delivery_status})'


# ─────────────────────────────────────────────
#  Announcements (public news board)
# ─────────────────────────────────────────────
class Announcement(models.Model):

    class Category(models.TextChoices):
        GENERAL    = 'general',    _('General')
        TOURNAMENT = 'tournament', _('Tournament')
        SAFETY     = 'safety',     _('Safety')
        TRAINING   = 'training',   _('Training')
        EQUIPMENT  = 'equipment',  _('Equipment')
        CLUB       = 'club',       _('Club')
        COACHING   = 'coaching',   _('Coaching')
        MEMBERSHIP = 'membership', _('Membership')
        NEWS       = 'news',       _('News')
        EMERGENCY  = 'emergency',  _('Emergency')

    class Status(models.TextChoices):
        DRAFT     = 'draft',     _('Draft')
        PUBLISHED = 'published', _('Published')
        ARCHIVED  = 'archived',  _('Archived')
        SCHEDULED = 'scheduled', _('Scheduled')

    class Audience(models.TextChoices):
        ALL_MEMBERS          = 'all_members',          _('All members')
        PLAYERS              = 'players',              _('Players')
        COACHES              = 'coaches',              _('Coaches')
        CLUB_MANAGERS        = 'club_managers',        _('Club managers')
        TOURNAMENT_DIRECTORS = 'tournament_directors', _('Tournament directors')
        OFFICIALS            = 'officials',            _('Officials')
        SPECIFIC_GROUPS      = 'specific_groups',      _('Specific groups')

    title     = models.CharField(max_length=200)
    content   = models.TextField()
    summary   = models.CharField(max_length=500, blank=True)
    category  = models.CharField(max_length=12, choices=Category.choices, default=Category.GENERAL)
    priority  = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    status    = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT, db_index=True)

    publish_date = models.DateTimeField(null=True, blank=True)
    expiry_date  = models.DateTimeField(null=True, blank=True)

    target_audience = models.CharField(max_length=25, choices=Audience.choices, default=Audience.ALL_MEMBERS)
    target_groups   = models.JSONField(default=list, blank=True)   # user_type values
    target_states   = models.JSONField(default=list, blank=True)

    author            = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='announcements')
    is_pinned         = models.BooleanField(default=False)
    send_notification = models.BooleanField(default=False)

    view_count  = models.PositiveIntegerField(default=0)
    click_count = models.PositiveIntegerField(default=0)
    like_count  = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-is_pinned', '-publish_date']

    def __str__(self):
        return self.title

    def is_active(self, now=None) -> bool:
        now = now or timezone.now()
        return (
            self.status == self.Status.PUBLISHED
            and (self.publish_date is None or self.publish_date <= now)
            and (self.expiry_date is None or self.expiry_date > now)
        )

    def can_be_viewed_by(self, user, now=None) -> bool:
        from .services.audience import announcement_matches
        if not self.is_active(now):
            return False
        return announcement_matches(
            self.target_audience, self.target_groups, self.target_states,
            user.user_type, user.state,
        )


# ─────────────────────────────────────────────
#  Direct Messages (user ↔ user)
# ─────────────────────────────────────────────
class Message(models.Model):

    class MessageType(models.TextChoices):
        DIRECT_MESSAGE            = 'direct_message',            _('Direct message')
        SYSTEM_NOTIFICATION       = 'system_notification',       _('System notification')
        ANNOUNCEMENT_NOTIFICATION = 'announcement_notification', _('Announcement notification')
        MATCH_REQUEST             = 'match_request',             _('Match request')
        TOURNAMENT_NOTIFICATION   = 'tournament_notification',   _('Tournament notification')
        PAYMENT_NOTIFICATION      = 'payment_notification',      _('Payment notification')

    class SenderType(models.TextChoices):
        USER   = 'user',   _('User')
        SYSTEM = 'system', _('System')
        ADMIN  = 'admin',  _('Admin')

    class Status(models.TextChoices):
        SENT      = 'sent',      _('Sent')
        DELIVERED = 'delivered', _('Delivered')
        READ      = 'read',      _('Read')
        ARCHIVED  = 'archived',  _('Archived')
        DELETED   = 'deleted',   _('Deleted')

    class Category(models.TextChoices):
        GENERAL       = 'general',       _('General')
        TOURNAMENT    = 'tournament',    _('Tournament')
        CLUB          = 'club',          _('Club')
        COACHING      = 'coaching',      _('Coaching')
        SUPPORT       = 'support',       _('Support')
        PAYMENT       = 'payment',       _('Payment')
        MATCH_REQUEST = 'match_request', _('Match request')
        SYSTEM        = 'system',        _('System')

    subject      = models.CharField(max_length=200)
    content      = models.TextField()
    message_type = models.CharField(max_length=30, choices=MessageType.choices, default=MessageType.DIRECT_MESSAGE)
    category     = models.CharField(max_length=15, choices=Category.choices, default=Category.GENERAL)
    priority     = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)

    sender      = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_messages')
    sender_type = models.CharField(max_length=10, choices=SenderType.choices, default=SenderType.USER)
    recipient   = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_messages')

    status      = models.CharField(max_length=10, choices=Status.choices, default=Status.SENT, db_index=True)
    is_read     = models.BooleanField(default=False)
    read_at     = models.DateTimeField(null=True, blank=True)
    is_starred  = models.BooleanField(default=False)
    is_archived = models.BooleanField(default=False)

    is_automated        = models.BooleanField(default=False)
    related_entity_type = models.CharField(max_length=30, blank=True)
    related_entity_id   = models.CharField(max_length=64, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.subject} → {self.recipient}'


# ─────────────────────────────────────────────
#  Notifications
# ─────────────────────────────────────────────
class Notification(models.Model):

    class NotificationType(models.TextChoices):
        TOURNAMENT_REGISTRATION = 'tournament_registration', _('Tournament registration')
        PAYMENT_CONFIRMATION    = 'payment_confirmation',    _('Payment confirmation')
        MATCH_SCHEDULE          = 'match_schedule',          _('Match schedule')
        TOURNAMENT_UPDATE       = 'tournament_update',       _('Tournament update')
        MEMBERSHIP_RENEWAL      = 'membership_renewal',      _('Membership renewal')
        SYSTEM_ANNOUNCEMENT     = 'system_announcement',     _('System announcement')
        PLAYER_MATCH_REQUEST    = 'player_match_request',    _('Player match request')

    class Level(models.TextChoices):
        LOW    = 'low',    _('Low')
        NORMAL = 'normal', _('Normal')
        HIGH   = 'high',   _('High')
        URGENT = 'urgent', _('Urgent')

    user         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type         = models.CharField(max_length=30, choices=NotificationType.choices, db_index=True)
    title        = models.CharField(max_length=200)
    message      = models.TextField()
    priority     = models.CharField(max_length=10, choices=Level.choices, default=Level.NORMAL)
    is_read      = models.BooleanField(default=False, db_index=True)
    read_at      = models.DateTimeField(null=True, blank=True)
    related_type = models.CharField(max_length=30, blank=True)
    related_id   = models.CharField(max_length=64, blank=True)
    action_url   = models.CharField(max_length=255, blank=True)
    email_sent   = models.BooleanField(default=False)
    expires_at   = models.DateTimeField(null=True, blank=True)
    created_at   = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.user}: {self.title}'


# ─────────────────────────────────────────────
#  Payments
# ─────────────────────────────────────────────
class Payment(models.Model):

    class PaymentType(models.TextChoices):
        MEMBERSHIP       = 'membership',       _('Membership')
        TOURNAMENT_ENTRY = 'tournament_entry', _('Tournament entry')
        COURT_RENTAL     = 'court_rental',     _('Court rental')
        CREDENTIAL       = 'credential',       _('Credential')
        OTHER            = 'other',            _('Other')

    class Status(models.TextChoices):
        PENDING    = 'pending',    _('Pending')
        PROCESSING = 'processing', _('Processing')
        COMPLETED  = 'completed',  _('Completed')
        FAILED     = 'failed',     _('Failed')
        REFUNDED   = 'refunded',   _('Refunded')
        CANCELLED  = 'cancelled',  _('Cancelled')

    id           = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='payments')
    amount       = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    currency     = models.CharField(max_length=3, default='MXN')
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices)
    description  = models.CharField(max_length=255, blank=True)
    status       = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_method = models.CharField(max_length=30, blank=True)

    gateway_payment_id = models.CharField(max_length=100, blank=True)
    gateway_charge_id  = models.CharField(max_length=100, blank=True)

    registration = models.ForeignKey(TournamentRegistration, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='payments')
    reservation  = models.ForeignKey(CourtReservation, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='payments')

    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    refund_reason = models.CharField(max_length=255, blank=True)
    refunded_at   = models.DateTimeField(null=True, blank=True)
    processed_at  = models.DateTimeField(null=True, blank=True)
    metadata      = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.user} — {self.amount:,.2f} {self.currency} ({self.get_status_display()})'

    def can_refund(self) -> bool:
        return self.status == self.Status.COMPLETED and not self.refunded_at


class PaymentLog(models.Model):
    """Audit row for each call to the payment gateway."""

    class Action(models.TextChoices):
        CHARGE = 'charge', _('Charge')
        REFUND = 'refund', _('Refund')

    class Result(models.TextChoices):
        SUCCESS = 'success', _('Success')
        FAILED  = 'failed',  _('Failed')

    payment      = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='logs')
    action       = models.CharField(max_length=10, choices=Action.choices)
    result       = models.CharField(max_length=10, choices=Result.choices)
    amount       = models.DecimalField(max_digits=10, decimal_places=2)
    reference    = models.CharField(max_length=100, blank=True)
    raw_response = models.JSONField(default=dict, blank=True)
    created_at   = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']


# ─────────────────────────────────────────────
#  Expenses
# ─────────────────────────────────────────────
class Expense(models.Model):

    class Category(models.TextChoices):
        TOURNAMENT_EXPENSE = 'tournament_expense', _('Tournament expense')
        CLUB_EXPENSE       = 'club_expense',       _('Club expense')
        COURT_MAINTENANCE  = 'court_maintenance',  _('Court maintenance')
        EQUIPMENT          = 'equipment',          _('Equipment')
        FACILITY           = 'facility',           _('Facility')
        OTHER              = 'other',              _('Other')

    class Status(models.TextChoices):
        PENDING  = 'pending',  _('Pending')
        APPROVED = 'approved', _('Approved')
        REJECTED = 'rejected', _('Rejected')
        PAID     = 'paid',     _('Paid')

    description  = models.CharField(max_length=255)
    amount       = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    category     = models.CharField(max_length=20, choices=Category.choices, default=Category.OTHER)
    tournament   = models.ForeignKey(Tournament, on_delete=models.CASCADE, null=True, blank=True, related_name='expenses')
    club         = models.ForeignKey(Club, on_delete=models.CASCADE, null=True, blank=True, related_name='expenses')
    created_by   = models.ForeignKey(User, on_delete=models.CASCADE, related_name='expenses')
    expense_date = models.DateField(default=timezone.localdate)
    receipt_url  = models.URLField(blank=True)
    notes        = models.TextField(blank=True)
    status       = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    approved_by  = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    approved_at  = models.DateTimeField(null=True, blank=True)
    payment_method    = models.CharField(max_length=30, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-expense_date']

    def __str__(self):
        return f'{self.description} — {self.amount:,.2f}'



# ─────────────────────────────────────────────
#  Tournament teams
# ─────────────────────────────────────────────
class TournamentTeam(models.Model):

    class Status(models.TextChoices):
        PENDING   = 'pending',   _('Pending')
        CONFIRMED = 'confirmed', _('Confirmed')
        CANCELLED = 'cancelled', _('Cancelled')
        WAITLIST  = 'waitlist',  _('Waitlist')

    tournament     = models.ForeignKey(Tournament, on_delete=models.CASCADE, related_name='teams')
    captain        = models.ForeignKey(User, on_delete=models.CASCADE, related_name='captained_teams')
    team_name      = models.CharField(max_length=100)
    team_number    = models.PositiveIntegerField()
    category       = models.CharField(max_length=15, choices=PlayCategory.choices, default=PlayCategory.DOUBLES)
    skill_level    = models.CharField(max_length=3, choices=SkillLevel.choices)
    status         = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    entry_fee      = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    payment_status = models.CharField(max_length=10, choices=PaymentState.choices, default=PaymentState.PENDING)
    max_players    = models.PositiveSmallIntegerField(default=4, validators=[MinValueValidator(2),
                                                                             MaxValueValidator(12)])

    final_position = models.PositiveIntegerField(null=True, blank=True)
    points         = models.PositiveIntegerField(default=0)
    matches_played = models.PositiveIntegerField(default=0)
    matches_won    = models.PositiveIntegerField(default=0)
    registered_at  = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering        = ['tournament', 'team_number']
        unique_together = [('tournament', 'team_name'), ('tournament', 'team_number')]

    def __str__(self):
        return f'#{self.team_number} {self.team_name}'

    @property
    def current_players(self) -> int:
        return self.members.count()

    def is_full(self) -> bool:
        return self.current_players >= self.max_players

    def is_active(self) -> bool:
        return self.status != self.Status.CANCELLED


class TournamentTeamMember(models.Model):

    class Role(models.TextChoices):
        CAPTAIN    = 'captain',    _('Captain')
        PLAYER     = 'player',     _('Player')
        SUBSTITUTE = 'substitute', _('Substitute')

    team      = models.ForeignKey(TournamentTeam, on_delete=models.CASCADE, related_name='members')
    user      = models.ForeignKey(User, on_delete=models.CASCADE, related_name='team_memberships')
    role      = models.CharField(max_length=10, choices=Role.choices, default=Role.PLAYER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering        = ['joined_at']
        unique_together = [('team', 'user')]

    def __str__(self):
        return f'{self.user} ({self.role}) in {self.team}'


# ─────────────────────────────────────────────
#  Player & coach finder
# ─────────────────────────────────────────────
class FinderPreference(models.Model):
    """What a player is looking for in a partner or opponent."""

    class MatchType(models.TextChoices):
        SINGLES = 'singles', _('Singles')
        DOUBLES = 'doubles', _('Doubles')
        MIXED   = 'mixed',   _('Mixed')
        ANY     = 'any',     _('Any')

    class ContactMethod(models.TextChoices):
        IN_APP = 'in_app', _('In-app message')
        EMAIL  = 'email',  _('Email')
        PHONE  = 'phone',  _('Phone')

    user             = models.OneToOneField(User, on_delete=models.CASCADE, related_name='finder_preference')
    skill_level_min  = models.CharField(max_length=3, choices=SkillLevel.choices, blank=True)
    skill_level_max  = models.CharField(max_length=3, choices=SkillLevel.choices, blank=True)
    preferred_gender = models.CharField(max_length=20, choices=User.Gender.choices, blank=True)
    age_min          = models.PositiveSmallIntegerField(null=True, blank=True,
                                                        validators=[MinValueValidator(16), MaxValueValidator(100)])
    age_max          = models.PositiveSmallIntegerField(null=True, blank=True,
                                                        validators=[MinValueValidator(16), MaxValueValidator(100)])
    search_radius_km = models.PositiveIntegerField(default=50, validators=[MinValueValidator(1),
                                                                           MaxValueValidator(500)])
    match_type       = models.CharField(max_length=10, choices=MatchType.choices, default=MatchType.ANY)
    availability_days  = models.JSONField(default=list, blank=True)    # ["monday", ...]
    availability_times = models.JSONField(default=list, blank=True)    # ["morning", "evening", ...]
    contact_method   = models.CharField(max_length=10, choices=ContactMethod.choices, default=ContactMethod.IN_APP)
    auto_notify      = models.BooleanField(default=True)
    is_active        = models.BooleanField(default=True)

    # ── Counters ─────────────────────────────
    searches_count    = models.PositiveIntegerField(default=0)
    requests_sent     = models.PositiveIntegerField(default=0)
    requests_received = models.PositiveIntegerField(default=0)
    matches_made      = models.PositiveIntegerField(default=0)
    last_search_at    = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f'Finder preferences of {self.user}'


class MatchRequest(models.Model):

    class Status(models.TextChoices):
        PENDING   = 'pending',   _('Pending')
        ACCEPTED  = 'accepted',  _('Accepted')
        DECLINED  = 'declined',  _('Declined')
        CANCELLED = 'cancelled', _('Cancelled')

    sender           = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_match_requests')
    receiver         = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_match_requests')
    message          = models.TextField(blank=True)
    match_type       = models.CharField(max_length=10, choices=FinderPreference.MatchType.choices,
                                        default=FinderPreference.MatchType.ANY)
    proposed_time    = models.DateTimeField(null=True, blank=True)
    club             = models.ForeignKey(Club, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    status           = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    response_message = models.TextField(blank=True)
    responded_at     = models.DateTimeField(null=True, blank=True)
    created_at       = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.sender} → {self.receiver} ({self.status})'


class CoachSearch(models.Model):
    """A saved coach search; each user keeps one active search."""

    user                  = models.ForeignKey(User, on_delete=models.CASCADE, related_name='coach_searches')
    state                 = models.CharField(max_length=50, blank=True)
    city                  = models.CharField(max_length=100, blank=True)
    specializations       = models.JSONField(default=list, blank=True)
    max_hourly_rate       = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    min_rating            = models.DecimalField(max_digits=3, decimal_places=2, null=True, blank=True,
                                                validators=[MinValueValidator(0), MaxValueValidator(5)])
    min_experience        = models.PositiveSmallIntegerField(null=True, blank=True)
    available_for_lessons = models.BooleanField(null=True, blank=True)
    is_active             = models.BooleanField(default=True)
    results_count         = models.PositiveIntegerField(default=0)
    last_run_at           = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']
        verbose_name_plural = 'coach searches'

    def __str__(self):
        return f'Coach search by {self.user}'


# ─────────────────────────────────────────────
#  Banners
# ─────────────────────────────────────────────
class Banner(models.Model):

    class DisplayType(models.TextChoices):
        CAROUSEL     = 'carousel',     _('Carousel')
        SIDEBAR      = 'sidebar',      _('Sidebar')
        POPUP        = 'popup',        _('Popup')
        NOTIFICATION = 'notification', _('Notification')

    class Audience(models.TextChoices):
        ALL      = 'all',      _('Everyone')
        PLAYERS  = 'players',  _('Players')
        COACHES  = 'coaches',  _('Coaches')
        CLUBS    = 'clubs',    _('Clubs')
        PARTNERS = 'partners', _('Partners')
        ADMINS   = 'admins',   _('Administrators')

    title           = models.CharField(max_length=200)
    subtitle        = models.CharField(max_length=255, blank=True)
    image_url       = models.URLField(max_length=500)
    thumbnail_url   = models.URLField(max_length=500, blank=True)
    action_url      = models.CharField(max_length=500, blank=True)
    action_text     = models.CharField(max_length=50, blank=True)
    position        = models.PositiveIntegerField(default=0)
    is_active       = models.BooleanField(default=True, db_index=True)
    is_featured     = models.BooleanField(default=False)
    display_type    = models.CharField(max_length=15, choices=DisplayType.choices, default=DisplayType.CAROUSEL)
    target_audience = models.CharField(max_length=10, choices=Audience.choices, default=Audience.ALL)
    start_date      = models.DateTimeField(null=True, blank=True)
    end_date        = models.DateTimeField(null=True, blank=True)
    tournament      = models.ForeignKey(Tournament, on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name='banners')
    club            = models.ForeignKey(Club, on_delete=models.SET_NULL, null=True, blank=True, related_name='banners')
    click_count     = models.PositiveIntegerField(default=0)
    view_count      = models.PositiveIntegerField(default=0)
    tags            = models.JSONField(default=list, blank=True)
    metadata        = models.JSONField(default=dict, blank=True)
    notes           = models.TextField(blank=True)
    created_by      = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-is_featured', 'position', '-created_at']

    def __str__(self):
        return self.title

    def is_live(self, now=None) -> bool:
        now = now or timezone.now()
        return (
            self.is_active
            and (self.start_date is None or self.start_date <= now)
            and (self.end_date is None or self.end_date >= now)
        )

    @property
    def click_through_rate(self) -> float:
        if not self.view_count:
            return 0.0
        return round(self.click_count * 100 / self.view_count, 2)


# ─────────────────────────────────────────────
#  Microsite moderation
# ─────────────────────────────────────────────
class MicrositeFlag(models.Model):
    """A moderation report against the public microsite of a club, partner or state account."""

    class FlagType(models.TextChoices):
        INAPPROPRIATE_CONTENT = 'inappropriate_content', _('Inappropriate content')
        SPAM                  = 'spam',                  _('Spam')
        FALSE_INFORMATION     = 'false_information',     _('False information')
        COPYRIGHT_VIOLATION   = 'copyright_violation',   _('Copyright violation')
        TERMS_VIOLATION       = 'terms_violation',       _('Terms violation')
        OTHER                 = 'other',                 _('Other')

    class Severity(models.TextChoices):
        LOW      = 'low',      _('Low')
        MEDIUM   = 'medium',   _('Medium')
        HIGH     = 'high',     _('High')
        CRITICAL = 'critical', _('Critical')

    class Status(models.TextChoices):
        OPEN      = 'open',      _('Open')
        RESOLVED  = 'resolved',  _('Resolved')
        DISMISSED = 'dismissed', _('Dismissed')

    microsite        = models.ForeignKey(User, on_delete=models.CASCADE, related_name='microsite_flags')
    flagged_by       = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='+')
    flag_type        = models.CharField(max_length=25, choices=FlagType.choices)
    severity         = models.CharField(max_length=10, choices=Severity.choices, default=Severity.MEDIUM)
    reason           = models.TextField()
    status           = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN, db_index=True)
    action_taken     = models.CharField(max_length=12, choices=MicrositeStatus.choices, blank=True)
    resolution_notes = models.TextField(blank=True)
    resolved_by      = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    resolved_at      = models.DateTimeField(null=True, blank=True)
    created_at       = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.get_flag_type_display()} on {self.microsite} ({self.severity})'
