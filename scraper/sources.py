"""Event listing sources scraped on every run, in processing order."""

EVENT_SOURCES = [
    'https://www.nyc.gov/main/events/',
    'https://lu.ma/nyc',
    'https://eventlume.com/things-to-do/new-york',
    'https://secretnyc.co/what-to-do-this-weekend-nyc/',
    'https://www.nycgovparks.org/events/',
    'https://www.nycforfree.co/events',
    'https://ny-event-radar.com',
    'https://www.msg.com/beacon-theatre/calendar?venue=beacon-theatre&venues=KovZpZAEAd6A',
    'https://www.thebellhouseny.com/shows',
    'https://www.musichallofwilliamsburg.com/events',
    'https://www.elsewherebrooklyn.com/events',
    'https://wl.eventim.us/BabysAllRightBrooklyn',
    'https://www.saintvitusbar.com/events',
    'https://nationalsawdust.org/events/',
    'https://bk.knittingfactory.com/calendar/',
    'https://www.markethotel.org/calendar#/events',
    'https://www.terminal5nyc.com/events',
    'https://www.boweryballroom.com/events',
    'https://www.bowerypresents.com/venues/brooklyn-steel',
    'https://www.roughtradenyc.com/calendar/',
    'https://www.bowerypresents.com/shows/webster-hall',
    'https://www.brooklynbowl.com/brooklyn/shows/all',
    'https://www.irvingplaza.com/shows',
    'https://sobs.com/events',
    'https://mercuryeastpresents.com/war-saw/',
    'https://www.thegramercytheatre.com/',
    'https://citywinery.com/new-york-city/events',
    'https://publictheater.org/joes-pub/',
    'https://lpr.com',
    'https://thecuttingroomnyc.com/calendar/',
    'http://thestonenyc.com/calendar.php',
    'https://mercuryeastpresents.com/mercurylounge/',
    'https://www.birdlandjazz.com/calendar/',
    'https://www.thedelancey.com/events',
    'https://berlin.nyc',
    'https://www.arlenesgrocerynyc.com/upcoming-events',
    'https://www.ottosshrunkenhead.com/pages/events.php',
    'https://dromnyc.com/events/',
    'https://www.cafewha.com/calendar',
    'https://www.bathtubginnyc.com/entertainment-nyc/',
    'https://www.petescandystore.com/calendar/',
    'https://tveyenyc.com/calendar/',
    'https://www.thetinycupboard.com/calendar',
    'https://www.eastvillecomedy.com/calendar',
    'https://www.brooklyncc.com/whats-playing-shows',
    'https://newyorkcomedyclub.com/calendar',
    'https://www.gothamcomedyclub.com/calendar',
    'https://www.westsidecomedyclub.com/calendar',
    'https://www.barclayscenter.com/events',
    'https://wl.seetickets.us/BabysAllRightBrooklyn',
    'https://www.elsewhere.club/events',
    'https://www.musichallofwilliamsburg.com/calendar/',
    'https://www.houseofyes.org/calendar',
    'https://littlefieldnyc.com/all-shows/',
    'https://www.unionhallny.com/calendar',
    'https://publicrecords.nyc',
    'https://www.kingstheatre.com/events/',
    'https://www.symphonyspace.org/events',
    'https://www.bam.org',
    'https://www.nationalsawdust.org/performances',
]

# Listing pages whose entries are read from their own detail pages. Maps the
# listing URL to the prefix its detail links share.
DEEP_SCRAPE_SOURCES = {
    'https://eventlume.com/things-to-do/new-york': 'https://eventlume.com/events/new-york/',
}
