"""
Video Meetings

Providers that allocate a joinable meeting link for a booked session:
- Base provider interface (base.py)
- Factory selecting the provider from settings (factory.py)
- Simple room links, no external dependency (simple.py)
- Google Meet through the Google Calendar API (google_meet.py)
- Zoom through the Zoom REST API (zoom.py)
- MeetingService: configured provider with fallback to simple rooms (service.py)
"""
