"""
Central Signal Registry for the economy core.

Services publish domain events with blinker signals once their unit of work
has committed; the realtime module turns them into Socket.IO events.

Usage:
    # Publisher
    from prizeversity_app.core.signals import balance_updated
    balance_updated.send(None, student_id=1, classroom_id=2, new_balance=40)

    # Subscriber (in a module's events.py)
    @balance_updated.connect
    def on_balance_updated(sender, **kwargs):
        ...
"""
from blinker import Namespace

# ============================================
# Wallet Signals
# ============================================
wallet_signals = Namespace()

# Fired after a committed balance change
# Payload: student_id, classroom_id, new_balance
balance_updated = wallet_signals.signal('balance_updated')

# Fired when a TA batch is queued for teacher review
# Payload: pending (PendingAdjustment), teacher_id
adjustment_queued = wallet_signals.signal('adjustment_queued')

# ============================================
# Group & Siphon Signals
# ============================================
group_signals = Namespace()

# Payload: group (Group)
group_updated = group_signals.signal('group_updated')

# Payload: siphon (SiphonRequest)
siphon_created = group_signals.signal('siphon_created')
siphon_voted = group_signals.signal('siphon_voted')
siphon_updated = group_signals.signal('siphon_updated')

# Fired when a group majority forwards a siphon to the teacher
# Payload: siphon (SiphonRequest), teacher_id
siphon_review_requested = group_signals.signal('siphon_review_requested')

# ============================================
# Bazaar Signals
# ============================================
bazaar_signals = Namespace()

# Payload: classroom_id, student_id, template_name, item_name, rarity, is_pity
mystery_box_opened = bazaar_signals.signal('mystery_box_opened')
