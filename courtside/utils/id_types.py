from typing import NewType

LeagueId = NewType("LeagueId", int)
SeasonId = NewType("SeasonId", int)
PlayerId = NewType("PlayerId", int)
RegistrationId = NewType("RegistrationId", int)
MatchId = NewType("MatchId", int)
MatchHistoryEntryId = NewType("MatchHistoryEntryId", int)
