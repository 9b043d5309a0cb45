# skillswap_core - peer skill-exchange engine
